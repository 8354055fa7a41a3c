"""Target path calculator for tracking trials.

Paths are authored in normalized canvas space (0..1 on both axes) and only
scaled to pixels as the very last step, so the same trial definition works for
any canvas size.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum

from .engine_core import Point, clamp01, lerp


class ShapeKind(StrEnum):
    LINE = "line"
    WAVE = "wave"
    CIRCLE = "circle"
    BLOB = "blob"
    ZIGZAG = "zigzag"


@dataclass(frozen=True, slots=True)
class ShapeParams:
    start_x: float
    start_y: float
    end_x: float | None = None
    end_y: float | None = None
    amplitude: float | None = None
    frequency: float | None = None
    center_x: float | None = None
    center_y: float | None = None
    radius: float | None = None
    points: tuple[Point, ...] = ()


# Fields each shape reads; anything listed here must be present.
REQUIRED_PARAMS: dict[ShapeKind, tuple[str, ...]] = {
    ShapeKind.LINE: ("end_x", "end_y"),
    ShapeKind.WAVE: ("end_x", "amplitude", "frequency"),
    ShapeKind.CIRCLE: ("center_x", "center_y", "radius"),
    ShapeKind.BLOB: (),
    ShapeKind.ZIGZAG: (),
}

POLYLINE_SHAPES = (ShapeKind.BLOB, ShapeKind.ZIGZAG)

# Blobs switch from straight segments to a Catmull-Rom curve at this many points.
_SMOOTH_MIN_POINTS = 4


def catmull_rom(p0: float, p1: float, p2: float, p3: float, t: float) -> float:
    t2 = t * t
    t3 = t2 * t
    return 0.5 * (
        (2.0 * p1)
        + (-p0 + p2) * t
        + (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t2
        + (-p0 + 3.0 * p1 - 3.0 * p2 + p3) * t3
    )


def normalized_position(shape: ShapeKind, params: ShapeParams, progress: float) -> Point:
    """Return the normalized (0..1) position at ``progress`` along the path."""

    shape = ShapeKind(shape)
    t = clamp01(progress)

    if shape is ShapeKind.LINE:
        end_x = _param(shape, params, "end_x")
        end_y = _param(shape, params, "end_y")
        return (lerp(params.start_x, end_x, t), lerp(params.start_y, end_y, t))

    if shape is ShapeKind.WAVE:
        end_x = _param(shape, params, "end_x")
        amplitude = _param(shape, params, "amplitude")
        frequency = _param(shape, params, "frequency")
        x = lerp(params.start_x, end_x, t)
        y = params.start_y + math.sin(t * math.pi * 2.0 * frequency) * amplitude
        return (x, y)

    if shape is ShapeKind.CIRCLE:
        center_x = _param(shape, params, "center_x")
        center_y = _param(shape, params, "center_y")
        radius = _param(shape, params, "radius")
        angle = t * math.pi * 2.0 - math.pi / 2.0
        return (center_x + math.cos(angle) * radius, center_y + math.sin(angle) * radius)

    if len(params.points) < 2:
        raise ValueError(f"{shape.value} path needs at least 2 points")
    return _polyline_position(shape, params.points, t)


def _param(shape: ShapeKind, params: ShapeParams, name: str) -> float:
    value = getattr(params, name)
    if value is None:
        raise ValueError(f"{shape.value} path needs parameter {name!r}")
    return float(value)


def _polyline_position(shape: ShapeKind, points: tuple[Point, ...], t: float) -> Point:
    total_segments = len(points) - 1
    segment_progress = t * total_segments
    segment = min(int(math.floor(segment_progress)), total_segments - 1)
    local_t = segment_progress - segment

    p1 = points[segment]
    p2 = points[segment + 1]

    if shape is ShapeKind.BLOB and len(points) >= _SMOOTH_MIN_POINTS:
        p0 = points[max(0, segment - 1)]
        p3 = points[min(len(points) - 1, segment + 2)]
        return (
            catmull_rom(p0[0], p1[0], p2[0], p3[0], local_t),
            catmull_rom(p0[1], p1[1], p2[1], p3[1], local_t),
        )

    return (lerp(p1[0], p2[0], local_t), lerp(p1[1], p2[1], local_t))


def position_on_path(
    shape: ShapeKind,
    params: ShapeParams,
    progress: float,
    width: float,
    height: float,
) -> Point:
    """Absolute pixel position of the target at ``progress`` (clamped to [0, 1])."""

    x, y = normalized_position(shape, params, progress)
    return (x * float(width), y * float(height))


def sample_path(
    shape: ShapeKind,
    params: ShapeParams,
    width: float,
    height: float,
    *,
    steps: int = 64,
) -> list[Point]:
    """Evenly spaced points along the whole path (used to draw a path preview)."""

    if steps < 1:
        raise ValueError("steps must be >= 1")
    return [position_on_path(shape, params, i / steps, width, height) for i in range(steps + 1)]
