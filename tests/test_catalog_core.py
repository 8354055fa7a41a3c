from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace

import pytest

from aim_trainer.catalog import (
    DEFAULT_CATALOG,
    CatalogError,
    ClickSequenceSpec,
    TrackShapeSpec,
    TrialCatalog,
    TrialKind,
    select_trials,
    validate_catalog,
)
from aim_trainer.engine_core import ScriptedRng, SeededRng
from aim_trainer.paths import ShapeKind, ShapeParams
from aim_trainer.runner import TrialRunner


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


FIVE = ((0.1, 0.1), (0.2, 0.2), (0.3, 0.3), (0.4, 0.4), (0.5, 0.5))


def _line(trial_id: str = "line", **overrides: object) -> TrackShapeSpec:
    params = ShapeParams(start_x=0.1, start_y=0.5, end_x=0.9, end_y=0.5)
    if overrides:
        params = replace(params, **overrides)
    return TrackShapeSpec(trial_id=trial_id, shape=ShapeKind.LINE, params=params, duration_ms=1000.0)


def test_default_catalog_is_valid() -> None:
    validate_catalog(DEFAULT_CATALOG)
    assert len(DEFAULT_CATALOG.click_sequences) == 5
    assert len(DEFAULT_CATALOG.track_shapes) == 5
    assert {s.shape for s in DEFAULT_CATALOG.track_shapes} == set(ShapeKind)


def test_entries_are_union_of_both_kinds() -> None:
    kinds = Counter(e.kind for e in DEFAULT_CATALOG.entries)
    assert kinds == {TrialKind.CLICK_SEQUENCE: 5, TrialKind.TRACK: 5}


def test_empty_catalog_is_rejected() -> None:
    with pytest.raises(CatalogError):
        validate_catalog(TrialCatalog())


def test_click_sequence_needs_exactly_five_positions() -> None:
    bad = ClickSequenceSpec(trial_id="short", positions=FIVE[:4])
    with pytest.raises(CatalogError, match="exactly 5"):
        validate_catalog(TrialCatalog(click_sequences=(bad,)))


def test_click_positions_must_be_normalized() -> None:
    bad = ClickSequenceSpec(trial_id="off", positions=FIVE[:4] + ((1.2, 0.5),))
    with pytest.raises(CatalogError):
        validate_catalog(TrialCatalog(click_sequences=(bad,)))


def test_missing_shape_parameter_is_rejected() -> None:
    with pytest.raises(CatalogError, match="end_y"):
        validate_catalog(TrialCatalog(track_shapes=(_line(end_y=None),)))


def test_polyline_needs_two_points() -> None:
    blob = TrackShapeSpec(
        trial_id="dot",
        shape=ShapeKind.BLOB,
        params=ShapeParams(start_x=0.5, start_y=0.5, points=((0.5, 0.5),)),
        duration_ms=1000.0,
    )
    with pytest.raises(CatalogError, match="at least 2"):
        validate_catalog(TrialCatalog(track_shapes=(blob,)))


def test_negative_duration_is_rejected() -> None:
    spec = replace(_line(), duration_ms=-1.0)
    with pytest.raises(CatalogError):
        validate_catalog(TrialCatalog(track_shapes=(spec,)))


def test_zero_duration_is_allowed() -> None:
    validate_catalog(TrialCatalog(track_shapes=(replace(_line(), duration_ms=0.0),)))


def test_declared_start_must_match_path_start() -> None:
    circle = TrackShapeSpec(
        trial_id="circle",
        shape=ShapeKind.CIRCLE,
        params=ShapeParams(start_x=0.5, start_y=0.5, center_x=0.5, center_y=0.5, radius=0.25),
        duration_ms=1000.0,
    )
    with pytest.raises(CatalogError, match="declared start"):
        validate_catalog(TrialCatalog(track_shapes=(circle,)))


def test_duplicate_trial_ids_are_rejected() -> None:
    with pytest.raises(CatalogError, match="duplicate"):
        validate_catalog(TrialCatalog(track_shapes=(_line("x"), _line("x"))))


def test_catalog_error_is_a_value_error() -> None:
    assert issubclass(CatalogError, ValueError)


def test_runner_refuses_a_malformed_catalog() -> None:
    bad = TrialCatalog(click_sequences=(ClickSequenceSpec(trial_id="s", positions=()),))
    with pytest.raises(CatalogError):
        TrialRunner(clock=FakeClock(), catalog=bad)


def test_selection_tags_sequential_instance_ids() -> None:
    picked = select_trials(DEFAULT_CATALOG, count=20, rng=SeededRng(5))
    assert [t.instance_id for t in picked] == list(range(20))
    entries = DEFAULT_CATALOG.entries
    assert all(t.spec in entries for t in picked)


def test_selection_is_with_replacement_and_may_repeat() -> None:
    picked = select_trials(DEFAULT_CATALOG, count=4, rng=ScriptedRng([7, 7, 7, 0]))
    assert [t.trial_id for t in picked] == ["track_circle", "track_circle", "track_circle", "seq_1"]


def test_selection_same_seed_same_sequence() -> None:
    a = select_trials(DEFAULT_CATALOG, count=30, rng=SeededRng(1234))
    b = select_trials(DEFAULT_CATALOG, count=30, rng=SeededRng(1234))
    assert a == b


def test_selection_draws_across_the_whole_catalog() -> None:
    picked = select_trials(DEFAULT_CATALOG, count=2000, rng=SeededRng(99))
    counts = Counter(t.trial_id for t in picked)
    assert set(counts) == {e.trial_id for e in DEFAULT_CATALOG.entries}
    assert min(counts.values()) > 120


def test_selection_count_zero() -> None:
    assert select_trials(DEFAULT_CATALOG, count=0, rng=SeededRng(1)) == ()
