from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .engine_core import Point, RandomSource, distance
from .paths import (
    POLYLINE_SHAPES,
    REQUIRED_PARAMS,
    ShapeKind,
    ShapeParams,
    normalized_position,
)

logger = logging.getLogger(__name__)

CLICKS_PER_SEQUENCE = 5

# Normalized tolerance when checking a declared start against the path.
_START_TOLERANCE = 1e-6

_CAMEL_PARAMS = {
    "end_x": "endX",
    "end_y": "endY",
    "amplitude": "amplitude",
    "frequency": "frequency",
    "center_x": "centerX",
    "center_y": "centerY",
    "radius": "radius",
}


class CatalogError(ValueError):
    """A trial definition is malformed; raised before any run starts."""


class TrialKind(StrEnum):
    CLICK_SEQUENCE = "click_sequence"
    TRACK = "track"


@dataclass(frozen=True, slots=True)
class ClickSequenceSpec:
    trial_id: str
    positions: tuple[Point, ...]

    @property
    def kind(self) -> TrialKind:
        return TrialKind.CLICK_SEQUENCE


@dataclass(frozen=True, slots=True)
class TrackShapeSpec:
    trial_id: str
    shape: ShapeKind
    params: ShapeParams
    duration_ms: float

    @property
    def kind(self) -> TrialKind:
        return TrialKind.TRACK

    @property
    def start(self) -> Point:
        return (self.params.start_x, self.params.start_y)


TrialSpec = ClickSequenceSpec | TrackShapeSpec


@dataclass(frozen=True, slots=True)
class TrialInstance:
    instance_id: int
    spec: TrialSpec

    @property
    def trial_id(self) -> str:
        return self.spec.trial_id

    @property
    def kind(self) -> TrialKind:
        return self.spec.kind


@dataclass(frozen=True, slots=True)
class TrialCatalog:
    click_sequences: tuple[ClickSequenceSpec, ...] = ()
    track_shapes: tuple[TrackShapeSpec, ...] = ()

    @property
    def entries(self) -> tuple[TrialSpec, ...]:
        return (*self.click_sequences, *self.track_shapes)


DEFAULT_CATALOG = TrialCatalog(
    click_sequences=(
        ClickSequenceSpec(
            trial_id="seq_1",
            positions=((0.2, 0.3), (0.4, 0.5), (0.6, 0.3), (0.8, 0.5), (0.5, 0.7)),
        ),
        ClickSequenceSpec(
            trial_id="seq_2",
            positions=((0.5, 0.2), (0.3, 0.4), (0.7, 0.4), (0.3, 0.7), (0.7, 0.7)),
        ),
        ClickSequenceSpec(
            trial_id="seq_3",
            positions=((0.15, 0.5), (0.35, 0.3), (0.5, 0.6), (0.65, 0.3), (0.85, 0.5)),
        ),
        ClickSequenceSpec(
            trial_id="seq_4",
            positions=((0.8, 0.2), (0.6, 0.4), (0.4, 0.2), (0.2, 0.4), (0.5, 0.75)),
        ),
        ClickSequenceSpec(
            trial_id="seq_5",
            positions=((0.5, 0.15), (0.25, 0.35), (0.75, 0.35), (0.35, 0.65), (0.65, 0.65)),
        ),
    ),
    track_shapes=(
        TrackShapeSpec(
            trial_id="track_line",
            shape=ShapeKind.LINE,
            params=ShapeParams(start_x=0.1, start_y=0.5, end_x=0.9, end_y=0.5),
            duration_ms=3000.0,
        ),
        TrackShapeSpec(
            trial_id="track_wave",
            shape=ShapeKind.WAVE,
            params=ShapeParams(start_x=0.1, start_y=0.5, end_x=0.9, amplitude=0.15, frequency=2.0),
            duration_ms=4000.0,
        ),
        TrackShapeSpec(
            trial_id="track_circle",
            shape=ShapeKind.CIRCLE,
            params=ShapeParams(start_x=0.5, start_y=0.25, center_x=0.5, center_y=0.5, radius=0.25),
            duration_ms=4000.0,
        ),
        TrackShapeSpec(
            trial_id="track_blob",
            shape=ShapeKind.BLOB,
            params=ShapeParams(
                start_x=0.3,
                start_y=0.3,
                points=((0.3, 0.3), (0.7, 0.25), (0.75, 0.7), (0.25, 0.65)),
            ),
            duration_ms=5000.0,
        ),
        TrackShapeSpec(
            trial_id="track_zigzag",
            shape=ShapeKind.ZIGZAG,
            params=ShapeParams(
                start_x=0.1,
                start_y=0.3,
                points=((0.1, 0.3), (0.3, 0.7), (0.5, 0.3), (0.7, 0.7), (0.9, 0.3)),
            ),
            duration_ms=4500.0,
        ),
    ),
)


def catalog_to_mapping(catalog: TrialCatalog) -> dict[str, Any]:
    """Trial definitions in the export schema, so a trialId can be mapped back offline."""

    click_sequences = [
        {
            "id": spec.trial_id,
            "type": str(spec.kind),
            "positions": [{"x": x, "y": y} for x, y in spec.positions],
        }
        for spec in catalog.click_sequences
    ]
    track_shapes = []
    for spec in catalog.track_shapes:
        params: dict[str, Any] = {}
        for name in REQUIRED_PARAMS[ShapeKind(spec.shape)]:
            params[_CAMEL_PARAMS[name]] = getattr(spec.params, name)
        if spec.params.points:
            params["points"] = [[x, y] for x, y in spec.params.points]
        params["duration"] = spec.duration_ms
        track_shapes.append(
            {
                "id": spec.trial_id,
                "type": "track",
                "shape": str(spec.shape),
                "startX": spec.params.start_x,
                "startY": spec.params.start_y,
                "params": params,
            }
        )
    return {"clickSequences": click_sequences, "trackShapes": track_shapes}


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _validate_click_sequence(spec: ClickSequenceSpec) -> None:
    if len(spec.positions) != CLICKS_PER_SEQUENCE:
        raise CatalogError(
            f"{spec.trial_id}: click sequence needs exactly {CLICKS_PER_SEQUENCE} positions, "
            f"got {len(spec.positions)}"
        )
    for idx, pos in enumerate(spec.positions):
        if len(pos) != 2 or not all(_is_number(v) for v in pos):
            raise CatalogError(f"{spec.trial_id}: position {idx} is not an (x, y) pair")
        if not all(0.0 <= float(v) <= 1.0 for v in pos):
            raise CatalogError(f"{spec.trial_id}: position {idx} is outside the 0..1 canvas")


def _validate_track_shape(spec: TrackShapeSpec) -> None:
    try:
        shape = ShapeKind(spec.shape)
    except ValueError:
        raise CatalogError(f"{spec.trial_id}: unknown shape {spec.shape!r}") from None

    params = spec.params
    if not _is_number(spec.duration_ms) or spec.duration_ms < 0:
        raise CatalogError(f"{spec.trial_id}: duration_ms must be a number >= 0")
    if not (_is_number(params.start_x) and _is_number(params.start_y)):
        raise CatalogError(f"{spec.trial_id}: start position is missing")

    for name in REQUIRED_PARAMS[shape]:
        if not _is_number(getattr(params, name)):
            raise CatalogError(f"{spec.trial_id}: {shape.value} needs parameter {name!r}")

    if shape is ShapeKind.CIRCLE and params.radius is not None and params.radius <= 0:
        raise CatalogError(f"{spec.trial_id}: circle radius must be > 0")

    if shape in POLYLINE_SHAPES:
        if len(params.points) < 2:
            raise CatalogError(f"{spec.trial_id}: {shape.value} needs at least 2 points")
        for idx, pt in enumerate(params.points):
            if len(pt) != 2 or not all(_is_number(v) for v in pt):
                raise CatalogError(f"{spec.trial_id}: point {idx} is not an (x, y) pair")

    path_start = normalized_position(shape, params, 0.0)
    if distance(path_start, spec.start) > _START_TOLERANCE:
        raise CatalogError(
            f"{spec.trial_id}: declared start {spec.start} does not match path start {path_start}"
        )


def validate_catalog(catalog: TrialCatalog) -> None:
    """Raise CatalogError if any definition in the catalog is unusable."""

    entries = catalog.entries
    if not entries:
        raise CatalogError("catalog has no trials")

    seen: set[str] = set()
    for spec in entries:
        if not spec.trial_id:
            raise CatalogError("trial_id must not be empty")
        if spec.trial_id in seen:
            raise CatalogError(f"duplicate trial_id {spec.trial_id!r}")
        seen.add(spec.trial_id)

        if isinstance(spec, ClickSequenceSpec):
            _validate_click_sequence(spec)
        else:
            _validate_track_shape(spec)

    logger.debug(
        "catalog ok: %d click sequences, %d track shapes",
        len(catalog.click_sequences),
        len(catalog.track_shapes),
    )


def select_trials(
    catalog: TrialCatalog,
    *,
    count: int,
    rng: RandomSource,
) -> tuple[TrialInstance, ...]:
    """Draw ``count`` trials uniformly at random, with replacement.

    No balancing: the same definition may come up several times in a row.
    """

    if count < 0:
        raise ValueError("count must be >= 0")
    entries = catalog.entries
    if not entries:
        raise CatalogError("catalog has no trials")

    picked: list[TrialInstance] = []
    for instance_id in range(count):
        idx = rng.randint(0, len(entries) - 1)
        picked.append(TrialInstance(instance_id=instance_id, spec=entries[idx]))
    return tuple(picked)
