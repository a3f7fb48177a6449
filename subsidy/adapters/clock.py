from __future__ import annotations

"""
subsidy.adapters.clock
======================

Clock sources for the ledger. The ledger only ever asks "what time is it, in
whole seconds"; the host decides where that answer comes from (block timestamp,
wall clock, or a test-controlled value).
"""

import time
from threading import Lock
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Monotonically non-decreasing time source, in seconds."""

    def now(self) -> int:
        """Return the current time as integer seconds since the epoch."""


class SystemClock:
    """Wall clock, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Caller-driven clock for tests and replay.

    Example:
        clock = ManualClock(1_700_000_000)
        clock.advance(3600)
        assert clock.now() == 1_700_003_600
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("start must be >= 0")
        self._now = int(start)
        self._lock = Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, ts: int) -> None:
        with self._lock:
            if ts < self._now:
                raise ValueError(f"clock cannot move backwards ({ts} < {self._now})")
            self._now = int(ts)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        with self._lock:
            self._now += int(seconds)
            return self._now


__all__ = ["Clock", "SystemClock", "ManualClock"]
