"""
zkchannel/core/time.py

Time sources for the host ledger.

Channel deadlines compare whole wall-clock seconds (Unix epoch).
Journal entries carry a wire timestamp: YYYY-MM-DDTHH:MM:SS.mmmZ
(milliseconds, explicit Z, no +00:00, no microseconds).

Every module that needs "now" takes a Clock. Nothing calls time.time()
directly outside this file.
"""

import time
from datetime import datetime, timezone


def wire_timestamp() -> str:
    """
    Return current UTC time in journal wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


class Clock:
    """Source of wall-clock seconds used for channel deadlines."""

    def now(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Reads the system clock."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """
    Deterministic clock for tests and simulations.

    Starts at `start` and only moves when advance() or set() is called.
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"clock cannot move backwards (advance={seconds})")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(
                f"clock cannot move backwards: {timestamp} < {self._now}"
            )
        self._now = int(timestamp)

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now})"
