"""Route polyline decoding and map framing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

Coordinate = Tuple[float, float]

# Span inflation applied when framing a route so edge markers stay visible
ROUTE_SPAN_PADDING = 1.2


@dataclass(frozen=True)
class MapRegion:
    center_latitude: float
    center_longitude: float
    latitude_delta: float
    longitude_delta: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": {"latitude": self.center_latitude, "longitude": self.center_longitude},
            "span": {"latitude_delta": self.latitude_delta, "longitude_delta": self.longitude_delta},
        }


# Barcelona city centre
DEFAULT_MAP_REGION = MapRegion(
    center_latitude=41.3851,
    center_longitude=2.1734,
    latitude_delta=0.1,
    longitude_delta=0.1,
)


def _read_varint(enc: str, index: int) -> Tuple[int, int]:
    result = shift = 0
    while True:
        if index >= len(enc):
            raise ValueError("truncated polyline")
        b = ord(enc[index]) - 63; index += 1
        if b < 0 or b > 63:
            raise ValueError(f"invalid polyline character {enc[index - 1]!r}")
        result |= (b & 0x1f) << shift; shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if (result & 1) else (result >> 1)
    return value, index


def decode_polyline(enc: str, precision: int = 5) -> List[Coordinate]:
    """Google Encoded Polyline decoder.

    Malformed input (truncated chunks, characters outside the encoding
    alphabet) decodes to an empty list rather than a partial route.
    """
    if not enc:
        return []
    factor = 10 ** precision
    points: List[Coordinate] = []
    index = lat = lng = 0
    try:
        while index < len(enc):
            dlat, index = _read_varint(enc, index)
            dlng, index = _read_varint(enc, index)
            lat += dlat
            lng += dlng
            points.append((lat / factor, lng / factor))
    except ValueError:
        return []
    return points


def bounding_box(coords: Sequence[Coordinate]) -> Optional[Tuple[float, float, float, float]]:
    """Return ``(min_lat, max_lat, min_lng, max_lng)`` or ``None`` for no points."""
    if not coords:
        return None
    lats = [lat for lat, _ in coords]
    lngs = [lng for _, lng in coords]
    return min(lats), max(lats), min(lngs), max(lngs)


def region_for_coordinates(
    coords: Sequence[Coordinate],
    padding: float = ROUTE_SPAN_PADDING,
) -> Optional[MapRegion]:
    box = bounding_box(coords)
    if box is None:
        return None
    min_lat, max_lat, min_lng, max_lng = box
    return MapRegion(
        center_latitude=(min_lat + max_lat) / 2,
        center_longitude=(min_lng + max_lng) / 2,
        latitude_delta=(max_lat - min_lat) * padding,
        longitude_delta=(max_lng - min_lng) * padding,
    )


__all__ = [
    "Coordinate",
    "MapRegion",
    "DEFAULT_MAP_REGION",
    "ROUTE_SPAN_PADDING",
    "decode_polyline",
    "bounding_box",
    "region_for_coordinates",
]
