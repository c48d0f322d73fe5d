"""Trip and stop records plus the rules that turn feed JSON into them.

The feed never carries usable ids, so every decode call draws them from the
``IdSequence`` objects handed in by the caller:

* trips get the next value of the trip sequence once the whole batch parsed,
* stop details get the next value of the stop-detail sequence, in array order,
* stops nested in a trip get their 1-based position inside that trip.

Nested stops are parsed leniently (bad elements are dropped and logged) while
every other field is strict and fails the whole payload with
``PayloadDecodeError``.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from display_format import format_coordinate, format_price, format_time
from id_sequence import IdSequence


class PayloadDecodeError(ValueError):
    """Raised when feed JSON does not have the expected shape."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _require_object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise PayloadDecodeError(path, f"expected object, got {_kind(value)}")
    return value


def _require_key(obj: Dict[str, Any], key: str, path: str) -> Any:
    if key not in obj or obj[key] is None:
        raise PayloadDecodeError(_join(path, key), "missing required field")
    return obj[key]


def _require_str(obj: Dict[str, Any], key: str, path: str) -> str:
    value = _require_key(obj, key, path)
    if not isinstance(value, str):
        raise PayloadDecodeError(_join(path, key), f"expected string, got {_kind(value)}")
    return value


def _require_float(obj: Dict[str, Any], key: str, path: str) -> float:
    value = _require_key(obj, key, path)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadDecodeError(_join(path, key), f"expected number, got {_kind(value)}")
    try:
        number = float(value)
    except OverflowError:
        raise PayloadDecodeError(_join(path, key), "number out of range") from None
    if not math.isfinite(number):
        raise PayloadDecodeError(_join(path, key), "number out of range")
    return number


def _require_int(obj: Dict[str, Any], key: str, path: str) -> int:
    value = _require_key(obj, key, path)
    if isinstance(value, bool):
        raise PayloadDecodeError(_join(path, key), "expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise PayloadDecodeError(_join(path, key), f"expected integer, got {_kind(value)}")


def _require_bool(obj: Dict[str, Any], key: str, path: str) -> bool:
    value = _require_key(obj, key, path)
    if not isinstance(value, bool):
        raise PayloadDecodeError(_join(path, key), f"expected boolean, got {_kind(value)}")
    return value


@dataclass(frozen=True)
class Point:
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    @classmethod
    def from_wire(cls, raw: Any, path: str = "") -> "Point":
        obj = _require_object(raw, path)
        return cls(
            latitude=_require_float(obj, "_latitude", path),
            longitude=_require_float(obj, "_longitude", path),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class Location:
    address: str
    point: Point

    @classmethod
    def from_wire(cls, raw: Any, path: str = "") -> "Location":
        obj = _require_object(raw, path)
        return cls(
            address=_require_str(obj, "address", path),
            point=Point.from_wire(_require_key(obj, "point", path), _join(path, "point")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "point": self.point.to_dict()}


class TripStatus(str, Enum):
    ONGOING = "ongoing"
    SCHEDULED = "scheduled"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    @classmethod
    def from_wire(cls, raw: Any, path: str = "") -> "TripStatus":
        if not isinstance(raw, str):
            raise PayloadDecodeError(path, f"expected string, got {_kind(raw)}")
        try:
            return cls(raw)
        except ValueError:
            raise PayloadDecodeError(path, f"unknown trip status {raw!r}") from None


_STATUS_COLORS = {
    TripStatus.ONGOING: "green",
    TripStatus.SCHEDULED: "blue",
    TripStatus.FINALIZED: "gray",
    TripStatus.CANCELLED: "red",
}


@dataclass(frozen=True)
class Stop:
    """A stop on a trip's route; ``id`` is its 1-based position in the trip."""
    id: int
    point: Optional[Point] = None

    @property
    def coordinate(self) -> Optional[Tuple[float, float]]:
        return self.point.coordinate if self.point else None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "point": self.point.to_dict() if self.point else None}


@dataclass(frozen=True)
class StopDetail:
    id: int
    stop_time: str
    paid: bool
    address: str
    trip_id: int
    user_name: str
    point: Point
    price: float

    @property
    def coordinate(self) -> Tuple[float, float]:
        return self.point.coordinate

    @property
    def formatted_price(self) -> str:
        return format_price(self.price)

    @property
    def formatted_stop_time(self) -> str:
        return format_time(self.stop_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stop_time": self.stop_time,
            "formatted_stop_time": self.formatted_stop_time,
            "paid": self.paid,
            "address": self.address,
            "trip_id": self.trip_id,
            "user_name": self.user_name,
            "point": self.point.to_dict(),
            "coordinates": format_coordinate(self.point),
            "price": self.price,
            "formatted_price": self.formatted_price,
        }


@dataclass(frozen=True)
class Trip:
    id: int
    description: str
    driver_name: str
    route: str  # Google encoded polyline
    status: TripStatus
    origin: Location
    destination: Location
    end_time: str
    start_time: str
    stops: Tuple[Stop, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "driver_name": self.driver_name,
            "route": self.route,
            "status": self.status.value,
            "status_label": self.status.display_name,
            "status_color": self.status.color,
            "origin": self.origin.to_dict(),
            "destination": self.destination.to_dict(),
            "stops": [stop.to_dict() for stop in self.stops],
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


# ---------------------------
# Trips
# ---------------------------

def _decode_stop_point(raw: Any, path: str) -> Optional[Point]:
    obj = _require_object(raw, path)
    if "point" not in obj:
        raise PayloadDecodeError(_join(path, "point"), "missing required field")
    if obj["point"] is None:
        return None
    return Point.from_wire(obj["point"], _join(path, "point"))


def _decode_trip_stops(raw: Any, path: str) -> Tuple[Stop, ...]:
    if not isinstance(raw, list):
        if raw is not None:
            print(f"[trip_decode] {path} is {_kind(raw)}, treating as no stops")
        return ()
    ordinals = IdSequence()
    stops: List[Stop] = []
    for index, element in enumerate(raw):
        element_path = f"{path}[{index}]"
        try:
            point = _decode_stop_point(element, element_path)
        except PayloadDecodeError as exc:
            print(f"[trip_decode] dropping stop {element_path}: {exc.message}")
            continue
        stops.append(Stop(id=ordinals.next(), point=point))
    return tuple(stops)


def _parse_trip_fields(raw: Any, path: str) -> Dict[str, Any]:
    obj = _require_object(raw, path)
    return {
        "description": _require_str(obj, "description", path),
        "driver_name": _require_str(obj, "driverName", path),
        "route": _require_str(obj, "route", path),
        "status": TripStatus.from_wire(_require_key(obj, "status", path), _join(path, "status")),
        "origin": Location.from_wire(_require_key(obj, "origin", path), _join(path, "origin")),
        "stops": _decode_trip_stops(obj.get("stops"), _join(path, "stops")),
        "destination": Location.from_wire(
            _require_key(obj, "destination", path), _join(path, "destination")
        ),
        "end_time": _require_str(obj, "endTime", path),
        "start_time": _require_str(obj, "startTime", path),
    }


def decode_trips(payload: Any, trip_ids: IdSequence) -> List[Trip]:
    """Decode a trips array, drawing one id per trip from ``trip_ids``."""
    if not isinstance(payload, list):
        raise PayloadDecodeError("", f"expected array of trips, got {_kind(payload)}")
    parsed = [_parse_trip_fields(raw, f"[{index}]") for index, raw in enumerate(payload)]
    return [Trip(id=trip_ids.next(), **fields) for fields in parsed]


# ---------------------------
# Stop details
# ---------------------------

def _parse_stop_detail_fields(raw: Any, path: str) -> Dict[str, Any]:
    obj = _require_object(raw, path)
    return {
        "stop_time": _require_str(obj, "stopTime", path),
        "paid": _require_bool(obj, "paid", path),
        "address": _require_str(obj, "address", path),
        "trip_id": _require_int(obj, "tripId", path),
        "user_name": _require_str(obj, "userName", path),
        "point": Point.from_wire(_require_key(obj, "point", path), _join(path, "point")),
        "price": _require_float(obj, "price", path),
    }


def _parse_stop_detail_array(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, list):
        raise PayloadDecodeError("", f"expected array of stops, got {_kind(payload)}")
    return [_parse_stop_detail_fields(raw, f"[{index}]") for index, raw in enumerate(payload)]


def decode_stop_details(payload: Any, stop_detail_ids: IdSequence) -> List[StopDetail]:
    """Decode the stops endpoint, which serves either an array or one object.

    The array reading is tried first; a single object is wrapped into a
    one-element list. When neither reading works the array error is raised.
    """
    try:
        parsed = _parse_stop_detail_array(payload)
    except PayloadDecodeError as array_error:
        try:
            parsed = [_parse_stop_detail_fields(payload, "")]
        except PayloadDecodeError:
            raise array_error from None
    return [StopDetail(id=stop_detail_ids.next(), **fields) for fields in parsed]


def _load_json(text: str) -> Any:
    if not text or not text.strip():
        raise PayloadDecodeError("", "empty response body")
    try:
        return json.loads(text)
    except ValueError as exc:
        # JSONDecodeError, or an integer literal past the digit limit
        raise PayloadDecodeError("", f"invalid JSON: {exc}") from exc


def decode_trips_json(text: str, trip_ids: IdSequence) -> List[Trip]:
    return decode_trips(_load_json(text), trip_ids)


def decode_stop_details_json(text: str, stop_detail_ids: IdSequence) -> List[StopDetail]:
    return decode_stop_details(_load_json(text), stop_detail_ids)


__all__ = [
    "PayloadDecodeError",
    "Point",
    "Location",
    "TripStatus",
    "Stop",
    "StopDetail",
    "Trip",
    "decode_trips",
    "decode_stop_details",
    "decode_trips_json",
    "decode_stop_details_json",
]
