from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock the trial engine reads for every timing decision.

    Reaction times, tracking progress, sampler ticks and the delayed trial
    advance are all measured against this clock, so tests can drive a run
    frame by frame with a fake.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class WallClock(Protocol):
    def now_ms(self) -> int:
        """Return wall-clock epoch milliseconds (result timestamps only)."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class SystemWallClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000.0)


def now_ms(clock: Clock) -> float:
    return clock.now() * 1000.0
