"""Cooperative timers polled from the host's frame callback.

Nothing here runs on its own thread. The host calls into the engine once per
frame and the engine asks these timers what fell due since the last frame.
Both timers have an explicit stop/cancel so a finished or aborted trial can
never be touched by a late tick.
"""

from __future__ import annotations

from collections.abc import Callable

# Absorbs float drift from converting clock seconds to milliseconds.
_EPS_MS = 1e-6


class FixedStepTimer:
    """Fixed-period ticker with catch-up.

    Tick ``k`` (k >= 1) is due at ``started_at_ms + k * interval_ms``. Polling
    returns every tick that came due since the previous poll, in order.
    """

    def __init__(self, *, interval_ms: float) -> None:
        if interval_ms <= 0.0:
            raise ValueError("interval_ms must be > 0")
        self._interval_ms = float(interval_ms)
        self._started_at_ms: float | None = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._started_at_ms is not None

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self, started_at_ms: float) -> None:
        self._started_at_ms = float(started_at_ms)
        self._ticks = 0

    def stop(self) -> None:
        self._started_at_ms = None

    def due(self, now_ms: float) -> list[float]:
        """Elapsed times (ms since start) of the ticks due by ``now_ms``."""

        if self._started_at_ms is None:
            return []
        elapsed_ms = float(now_ms) - self._started_at_ms
        out: list[float] = []
        while (self._ticks + 1) * self._interval_ms <= elapsed_ms + _EPS_MS:
            self._ticks += 1
            out.append(self._ticks * self._interval_ms)
        return out


class DelayedCall:
    """One-shot callback fired on the first poll at or after ``due_at_ms``."""

    def __init__(self, *, due_at_ms: float, callback: Callable[[], None]) -> None:
        self._due_at_ms = float(due_at_ms)
        self._callback: Callable[[], None] | None = callback

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def cancel(self) -> None:
        self._callback = None

    def poll(self, now_ms: float) -> bool:
        """Fire the callback if due. Returns True when it fired."""

        if self._callback is None or float(now_ms) + _EPS_MS < self._due_at_ms:
            return False
        callback = self._callback
        self._callback = None
        callback()
        return True
