"""Clock abstraction for expiration checks."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Source of wall-clock time in milliseconds since the epoch."""

    def current_time_millis(self) -> int: ...


class SystemClock:
    """Clock backed by the system time."""

    def current_time_millis(self) -> int:
        return time.time_ns() // 1_000_000


SYSTEM_CLOCK: Clock = SystemClock()
