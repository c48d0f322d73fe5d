import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from id_sequence import IdSequences
from trip_client import (
    DEFAULT_STOPS_URL,
    DEFAULT_TRIPS_URL,
    DecodingFailedError,
    InvalidURLError,
    RequestFailedError,
    TripFeedClient,
    TripFeedConfig,
    TripFeedError,
)
from trip_models import TripStatus

TRIPS_URL = "https://test-api.com/trips.json"
STOPS_URL = "https://test-api.com/stops.json"

MOCK_TRIPS = [
    {
        "description": "Test Trip 1",
        "driverName": "John Doe",
        "route": "Route A",
        "origin": {"address": "123 Start Street", "point": {"_latitude": 40.7128, "_longitude": -74.0060}},
        "destination": {"address": "456 End Avenue", "point": {"_latitude": 40.7589, "_longitude": -73.9851}},
        "startTime": "2024-01-01T09:00:00Z",
        "endTime": "2024-01-01T10:30:00Z",
        "status": "finalized",
        "stops": [{"id": 101, "point": {"_latitude": 40.7300, "_longitude": -73.9950}}],
    },
    {
        "description": "Test Trip 2",
        "driverName": "Jane Smith",
        "route": "Route B",
        "origin": {"address": "789 Begin Blvd", "point": {"_latitude": 40.6892, "_longitude": -74.0445}},
        "destination": {"address": "101 Finish Lane", "point": {"_latitude": 40.7505, "_longitude": -73.9934}},
        "startTime": "2024-01-01T14:00:00Z",
        "endTime": "2024-01-01T15:45:00Z",
        "status": "ongoing",
        "stops": [],
    },
]

MOCK_SINGLE_STOP = {
    "stopTime": "2024-01-01T09:30:00Z",
    "address": "123 Test Street, Test City",
    "userName": "Test User",
    "price": 25.50,
    "paid": True,
    "tripId": 1,
    "point": {"_latitude": 40.7128, "_longitude": -74.0060},
}

MOCK_STOPS = [
    MOCK_SINGLE_STOP,
    {
        "stopTime": "2024-01-01T14:15:00Z",
        "address": "456 Another Street, Another City",
        "userName": "Another User",
        "price": 30.75,
        "paid": False,
        "tripId": 2,
        "point": {"_latitude": 40.7589, "_longitude": -73.9851},
    },
]


class FakeFeed:
    """Serves canned bodies per URL and remembers what was requested."""

    def __init__(self, bodies=None, status_code=200, error=None):
        self.bodies = dict(bodies or {})
        self.status_code = status_code
        self.error = error
        self.requested = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requested.append(str(request.url))
        if self.error is not None:
            raise self.error
        body = self.bodies.get(str(request.url), "")
        if not isinstance(body, str):
            body = json.dumps(body)
        return httpx.Response(self.status_code, text=body)


def _client(feed: FakeFeed, config=None, sequences=None) -> TripFeedClient:
    return TripFeedClient(
        config=config or TripFeedConfig(trips_url=TRIPS_URL, stops_url=STOPS_URL),
        id_sequences=sequences,
        transport=httpx.MockTransport(feed),
    )


def _run(coro):
    return asyncio.run(coro)


def test_load_trips_success():
    feed = FakeFeed({TRIPS_URL: MOCK_TRIPS})
    trips = _run(_client(feed).load_trips())

    assert feed.requested == [TRIPS_URL]
    assert [t.id for t in trips] == [1, 2]
    assert trips[0].description == "Test Trip 1"
    assert trips[0].status is TripStatus.FINALIZED
    assert trips[1].status is TripStatus.ONGOING
    assert trips[0].origin.point.latitude == pytest.approx(40.7128)
    assert len(trips[0].stops) == 1
    assert trips[0].stops[0].id == 1
    assert trips[1].stops == ()


def test_load_stops_single_object():
    feed = FakeFeed({STOPS_URL: MOCK_SINGLE_STOP})
    stops = _run(_client(feed).load_stops())

    assert feed.requested == [STOPS_URL]
    assert len(stops) == 1
    assert stops[0].id == 1
    assert stops[0].user_name == "Test User"
    assert stops[0].price == pytest.approx(25.50)
    assert stops[0].trip_id == 1


def test_load_stops_array():
    stops = _run(_client(FakeFeed({STOPS_URL: MOCK_STOPS})).load_stops())
    assert [(s.id, s.user_name) for s in stops] == [(1, "Test User"), (2, "Another User")]


def test_empty_arrays():
    feed = FakeFeed({TRIPS_URL: [], STOPS_URL: []})
    client = _client(feed)
    assert _run(client.load_trips()) == []
    assert _run(client.load_stops()) == []


def test_trip_ids_continue_across_calls():
    client = _client(FakeFeed({TRIPS_URL: MOCK_TRIPS}))

    async def scenario():
        first = await client.load_trips()
        second = await client.load_trips()
        return first, second

    first, second = _run(scenario())
    assert [t.id for t in first] == [1, 2]
    assert [t.id for t in second] == [3, 4]


def test_reset_between_calls_restarts_ids():
    sequences = IdSequences()
    client = _client(FakeFeed({TRIPS_URL: MOCK_TRIPS}), sequences=sequences)

    async def scenario():
        first = await client.load_trips()
        sequences.trips.reset()
        second = await client.load_trips()
        return first, second

    first, second = _run(scenario())
    assert [t.id for t in first] == [1, 2]
    assert [t.id for t in second] == [1, 2]


def test_stop_detail_ids_continue_across_calls():
    client = _client(FakeFeed({STOPS_URL: MOCK_STOPS}))

    async def scenario():
        return await client.load_stops(), await client.load_stops()

    first, second = _run(scenario())
    assert [s.id for s in first] == [1, 2]
    assert [s.id for s in second] == [3, 4]


def test_trip_and_stop_sequences_are_independent():
    client = _client(FakeFeed({TRIPS_URL: MOCK_TRIPS, STOPS_URL: MOCK_STOPS}))

    async def scenario():
        return await asyncio.gather(client.load_trips(), client.load_stops())

    trips, stops = _run(scenario())
    assert [t.id for t in trips] == [1, 2]
    assert [s.id for s in stops] == [1, 2]


def test_transport_failure_is_request_failed():
    cause = httpx.ConnectError("not connected to internet")
    feed = FakeFeed(error=cause)
    with pytest.raises(RequestFailedError) as excinfo:
        _run(_client(feed).load_trips())
    assert excinfo.value.cause is cause
    assert "Network request failed" in excinfo.value.description


def test_timeout_is_request_failed():
    with pytest.raises(RequestFailedError) as excinfo:
        _run(_client(FakeFeed(error=httpx.ReadTimeout("timed out"))).load_stops())
    assert isinstance(excinfo.value.cause, httpx.TimeoutException)


def test_http_error_status_is_request_failed():
    feed = FakeFeed({TRIPS_URL: MOCK_TRIPS}, status_code=503)
    with pytest.raises(RequestFailedError) as excinfo:
        _run(_client(feed).load_trips())
    assert isinstance(excinfo.value.cause, httpx.HTTPStatusError)


@pytest.mark.parametrize("body", ["invalid json", "", '{"unexpected": true}'])
def test_bad_trips_body_is_decoding_failed(body):
    with pytest.raises(DecodingFailedError) as excinfo:
        _run(_client(FakeFeed({TRIPS_URL: body})).load_trips())
    assert excinfo.value.description.startswith("Failed to decode data")


def test_bad_stops_body_is_decoding_failed():
    with pytest.raises(DecodingFailedError):
        _run(_client(FakeFeed({STOPS_URL: "{ invalid json }"})).load_stops())


@pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://test-api.com/trips.json", "https://"])
def test_invalid_url_fails_before_any_request(url):
    feed = FakeFeed({TRIPS_URL: MOCK_TRIPS})
    client = _client(feed, config=TripFeedConfig(trips_url=url, stops_url=url))
    with pytest.raises(InvalidURLError) as excinfo:
        _run(client.load_trips())
    with pytest.raises(InvalidURLError):
        _run(client.load_stops())
    assert feed.requested == []
    assert excinfo.value.description == "The provided URL is invalid"


def test_error_taxonomy_shares_base():
    for error in (
        InvalidURLError(""),
        RequestFailedError(httpx.ConnectError("down")),
        DecodingFailedError("Test"),
    ):
        assert isinstance(error, TripFeedError)
    assert "Failed to decode data: Test" == DecodingFailedError("Test").description


def test_config_from_env(monkeypatch):
    monkeypatch.delenv("TRIPS_URL", raising=False)
    monkeypatch.delenv("STOPS_URL", raising=False)
    config = TripFeedConfig.from_env()
    assert config.trips_url == DEFAULT_TRIPS_URL
    assert config.stops_url == DEFAULT_STOPS_URL

    monkeypatch.setenv("TRIPS_URL", " https://example.com/t.json ")
    monkeypatch.setenv("STOPS_URL", "https://example.com/s.json")
    config = TripFeedConfig.from_env()
    assert config.trips_url == "https://example.com/t.json"
    assert config.stops_url == "https://example.com/s.json"
