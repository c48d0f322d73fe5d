"""Monotonic id counters used when decoding trip feeds."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field


class IdSequence:
    """Thread-safe counter yielding 1, 2, 3, ... until reset."""

    def __init__(self) -> None:
        self._current = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._current += 1
            return self._current

    def reset(self) -> None:
        with self._lock:
            self._current = 0

    @property
    def current(self) -> int:
        """Last value handed out (0 before the first call)."""
        with self._lock:
            return self._current

    def __repr__(self) -> str:
        return f"IdSequence(current={self.current})"


@dataclass
class IdSequences:
    """The two independent sequences a feed client draws from."""
    trips: IdSequence = field(default_factory=IdSequence)
    stop_details: IdSequence = field(default_factory=IdSequence)

    def reset(self) -> None:
        self.trips.reset()
        self.stop_details.reset()


__all__ = ["IdSequence", "IdSequences"]
