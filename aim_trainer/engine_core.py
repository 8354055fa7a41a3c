from __future__ import annotations

import math
import random
from enum import StrEnum
from typing import Protocol, Sequence

Point = tuple[float, float]


class RandomSource(Protocol):
    """Random stream used for trial selection.

    Injected so tests can supply a deterministic sequence.
    """

    def randint(self, a: int, b: int) -> int:
        ...


class Phase(StrEnum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RUNNING = "running"
    COMPLETE = "complete"


class TrialStage(StrEnum):
    AWAITING_CLICK = "awaiting_click"
    AWAITING_PRESS = "awaiting_press"
    TRACKING = "tracking"
    FINISHED = "finished"


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)


class ScriptedRng:
    """Replays a fixed list of integers, wrapping around; each value is clamped into range."""

    def __init__(self, values: Sequence[int]) -> None:
        if not values:
            raise ValueError("values must not be empty")
        self._values = tuple(int(v) for v in values)
        self._pos = 0

    def randint(self, a: int, b: int) -> int:
        v = self._values[self._pos % len(self._values)]
        self._pos += 1
        return max(a, min(b, v))


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def round_half_up(x: float) -> int:
    # Points round .5 upwards rather than to even.
    return int(math.floor(x + 0.5))
