"""Async client for the static trips/stops JSON feed."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, List, Optional, TypeVar

import httpx

from id_sequence import IdSequence, IdSequences
from trip_models import (
    PayloadDecodeError,
    StopDetail,
    Trip,
    decode_stop_details_json,
    decode_trips_json,
)

DEFAULT_TRIPS_URL = "https://sandbox-giravolta-static.s3.eu-west-1.amazonaws.com/tech-test/trips.json"
DEFAULT_STOPS_URL = "https://sandbox-giravolta-static.s3.eu-west-1.amazonaws.com/tech-test/stops.json"

T = TypeVar("T")


class TripFeedError(Exception):
    """Base class for every failure of a feed call."""

    @property
    def description(self) -> str:
        return str(self)


class InvalidURLError(TripFeedError):
    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__("The provided URL is invalid")


class RequestFailedError(TripFeedError):
    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Network request failed: {cause}")


class DecodingFailedError(TripFeedError):
    def __init__(self, details: str) -> None:
        self.details = details
        super().__init__(f"Failed to decode data: {details}")


@dataclass(frozen=True)
class TripFeedConfig:
    trips_url: str = DEFAULT_TRIPS_URL
    stops_url: str = DEFAULT_STOPS_URL

    @classmethod
    def from_env(cls) -> "TripFeedConfig":
        """Build the feed configuration from the environment.

        Optional environment variables:
        * ``TRIPS_URL`` - trips endpoint, defaults to the public sandbox file.
        * ``STOPS_URL`` - stop details endpoint, defaults to the sandbox file.
        """
        trips_url = (os.getenv("TRIPS_URL") or "").strip()
        stops_url = (os.getenv("STOPS_URL") or "").strip()
        return cls(
            trips_url=trips_url or DEFAULT_TRIPS_URL,
            stops_url=stops_url or DEFAULT_STOPS_URL,
        )


def _validate_url(raw: str) -> httpx.URL:
    if not raw or not raw.strip():
        raise InvalidURLError(raw)
    try:
        url = httpx.URL(raw.strip())
    except (httpx.InvalidURL, TypeError, ValueError):
        raise InvalidURLError(raw) from None
    if url.scheme not in {"http", "https"} or not url.host:
        raise InvalidURLError(raw)
    return url


class TripFeedClient:
    """Fetches trips and stop details and decodes them with fresh ids.

    Every call re-fetches and re-decodes; ids keep counting across calls until
    the sequences in ``id_sequences`` are reset.
    """

    def __init__(
        self,
        config: Optional[TripFeedConfig] = None,
        id_sequences: Optional[IdSequences] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or TripFeedConfig()
        self.id_sequences = id_sequences or IdSequences()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_env(cls) -> "TripFeedClient":
        return cls(config=TripFeedConfig.from_env())

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _fetch_text(self, raw_url: str) -> str:
        url = _validate_url(raw_url)
        client = await self._ensure_client()
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            print(f"[trip_client] GET {url} failed: {exc!r}")
            raise RequestFailedError(exc) from exc
        return response.text

    def _decode(self, text: str, decoder: Callable[[str, IdSequence], List[T]], ids: IdSequence) -> List[T]:
        try:
            return decoder(text, ids)
        except PayloadDecodeError as exc:
            print(f"[trip_client] decode failed: {exc}")
            raise DecodingFailedError(str(exc)) from exc

    async def load_trips(self) -> List[Trip]:
        text = await self._fetch_text(self.config.trips_url)
        trips = self._decode(text, decode_trips_json, self.id_sequences.trips)
        print(f"[trip_client] loaded {len(trips)} trips")
        return trips

    async def load_stops(self) -> List[StopDetail]:
        text = await self._fetch_text(self.config.stops_url)
        stops = self._decode(text, decode_stop_details_json, self.id_sequences.stop_details)
        print(f"[trip_client] loaded {len(stops)} stops")
        return stops


__all__ = [
    "DEFAULT_TRIPS_URL",
    "DEFAULT_STOPS_URL",
    "TripFeedError",
    "InvalidURLError",
    "RequestFailedError",
    "DecodingFailedError",
    "TripFeedConfig",
    "TripFeedClient",
]
