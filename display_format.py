"""Presentation strings for stop times, prices and coordinates.

These helpers never touch decoded values; they only render them.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

INVALID_TIME = "Invalid Time"
CURRENCY_SYMBOL = "€"

# The feed has been seen emitting dotted times, e.g. 2018-12-18T08.10.00.000Z
_TIME_FORMATS = (
    "%Y-%m-%dT%H.%M.%S.%f%z",
    "%Y-%m-%dT%H.%M.%S%z",
)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_time(raw: Any) -> str:
    """Short date and time, e.g. ``01/02/24, 9:30 AM``, in the timestamp's own offset."""
    dt = parse_timestamp(raw)
    if dt is None:
        return INVALID_TIME
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%m/%d/%y}, {hour}:{dt:%M} {meridiem}"


def format_price(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value:.2f}{CURRENCY_SYMBOL}"
    try:
        return f"{float(value):.2f}{CURRENCY_SYMBOL}"
    except (TypeError, ValueError):
        return f"{value}{CURRENCY_SYMBOL}"


def format_coordinate(point: Any) -> str:
    return f"{point.latitude:.5f}, {point.longitude:.5f}"


__all__ = [
    "INVALID_TIME",
    "parse_timestamp",
    "format_time",
    "format_price",
    "format_coordinate",
]
