from __future__ import annotations

import math

import pytest

from aim_trainer.catalog import DEFAULT_CATALOG
from aim_trainer.paths import (
    ShapeKind,
    ShapeParams,
    catmull_rom,
    normalized_position,
    position_on_path,
    sample_path,
)

W, H = 800, 600


@pytest.mark.parametrize("spec", DEFAULT_CATALOG.track_shapes, ids=lambda s: s.trial_id)
def test_progress_zero_is_declared_start(spec) -> None:
    x, y = position_on_path(spec.shape, spec.params, 0.0, W, H)
    assert x == pytest.approx(spec.params.start_x * W, abs=1e-9)
    assert y == pytest.approx(spec.params.start_y * H, abs=1e-9)


@pytest.mark.parametrize("spec", DEFAULT_CATALOG.track_shapes, ids=lambda s: s.trial_id)
def test_out_of_range_progress_is_clamped(spec) -> None:
    assert position_on_path(spec.shape, spec.params, -0.5, W, H) == position_on_path(
        spec.shape, spec.params, 0.0, W, H
    )
    assert position_on_path(spec.shape, spec.params, 7.0, W, H) == position_on_path(
        spec.shape, spec.params, 1.0, W, H
    )


@pytest.mark.parametrize("spec", DEFAULT_CATALOG.track_shapes, ids=lambda s: s.trial_id)
def test_paths_have_no_jumps(spec) -> None:
    pts = sample_path(spec.shape, spec.params, W, H, steps=2000)
    biggest = max(math.dist(a, b) for a, b in zip(pts, pts[1:]))
    assert biggest < 5.0


def test_line_interpolates_between_endpoints() -> None:
    params = ShapeParams(start_x=0.1, start_y=0.2, end_x=0.9, end_y=0.6)
    assert position_on_path(ShapeKind.LINE, params, 0.5, W, H) == pytest.approx((400.0, 240.0))
    assert position_on_path(ShapeKind.LINE, params, 1.0, W, H) == pytest.approx((720.0, 360.0))


def test_wave_peaks_at_a_quarter_cycle() -> None:
    params = ShapeParams(start_x=0.0, start_y=0.5, end_x=1.0, amplitude=0.1, frequency=1.0)
    x, y = position_on_path(ShapeKind.WAVE, params, 0.25, W, H)
    assert x == pytest.approx(200.0)
    assert y == pytest.approx(0.6 * H)

    _, y_end = position_on_path(ShapeKind.WAVE, params, 1.0, W, H)
    assert y_end == pytest.approx(0.5 * H, abs=1e-9)


def test_circle_starts_at_top_and_runs_clockwise_on_screen() -> None:
    params = ShapeParams(start_x=0.5, start_y=0.25, center_x=0.5, center_y=0.5, radius=0.25)
    assert position_on_path(ShapeKind.CIRCLE, params, 0.0, W, H) == pytest.approx((400.0, 150.0))
    # Screen y grows downwards, so a quarter turn lands on the right-hand side.
    assert position_on_path(ShapeKind.CIRCLE, params, 0.25, W, H) == pytest.approx((600.0, 300.0))
    assert position_on_path(ShapeKind.CIRCLE, params, 1.0, W, H) == pytest.approx((400.0, 150.0))


def test_zigzag_hits_every_control_point_at_segment_boundaries() -> None:
    pts = ((0.1, 0.3), (0.3, 0.7), (0.5, 0.3), (0.7, 0.7), (0.9, 0.3))
    params = ShapeParams(start_x=0.1, start_y=0.3, points=pts)
    for i, p in enumerate(pts):
        got = normalized_position(ShapeKind.ZIGZAG, params, i / 4)
        assert got == pytest.approx(p)

    # Straight-line between points.
    assert normalized_position(ShapeKind.ZIGZAG, params, 0.125) == pytest.approx((0.2, 0.5))


def test_blob_curve_passes_through_control_points() -> None:
    pts = ((0.3, 0.3), (0.7, 0.25), (0.75, 0.7), (0.25, 0.65))
    params = ShapeParams(start_x=0.3, start_y=0.3, points=pts)
    for i, p in enumerate(pts):
        got = normalized_position(ShapeKind.BLOB, params, i / 3)
        assert got == pytest.approx(p)

    # Smooth, not straight: the midpoint of the middle segment bulges off the chord.
    mid = normalized_position(ShapeKind.BLOB, params, 0.5)
    chord_mid = ((pts[1][0] + pts[2][0]) / 2, (pts[1][1] + pts[2][1]) / 2)
    assert math.dist(mid, chord_mid) > 1e-3


def test_blob_with_few_points_falls_back_to_straight_segments() -> None:
    pts = ((0.2, 0.2), (0.8, 0.2), (0.8, 0.8))
    params = ShapeParams(start_x=0.2, start_y=0.2, points=pts)
    assert normalized_position(ShapeKind.BLOB, params, 0.25) == pytest.approx((0.5, 0.2))
    assert normalized_position(ShapeKind.BLOB, params, 0.75) == pytest.approx((0.8, 0.5))


def test_catmull_rom_endpoints() -> None:
    assert catmull_rom(0.0, 1.0, 2.0, 3.0, 0.0) == pytest.approx(1.0)
    assert catmull_rom(0.0, 1.0, 2.0, 3.0, 1.0) == pytest.approx(2.0)
    # Collinear, evenly spaced points give linear motion.
    assert catmull_rom(0.0, 1.0, 2.0, 3.0, 0.5) == pytest.approx(1.5)


def test_output_scales_with_canvas() -> None:
    spec = DEFAULT_CATALOG.track_shapes[1]
    small = position_on_path(spec.shape, spec.params, 0.37, 400, 300)
    big = position_on_path(spec.shape, spec.params, 0.37, 800, 600)
    assert big == pytest.approx((small[0] * 2, small[1] * 2))


def test_shape_accepts_plain_string() -> None:
    params = ShapeParams(start_x=0.0, start_y=0.0, end_x=1.0, end_y=1.0)
    assert position_on_path("line", params, 0.5, 100, 100) == pytest.approx((50.0, 50.0))


@pytest.mark.parametrize(
    ("shape", "params", "missing"),
    [
        (ShapeKind.LINE, ShapeParams(start_x=0.1, start_y=0.5, end_x=0.9), "end_y"),
        (ShapeKind.WAVE, ShapeParams(start_x=0.1, start_y=0.5, end_x=0.9, amplitude=0.1), "frequency"),
        (ShapeKind.CIRCLE, ShapeParams(start_x=0.5, start_y=0.25, center_x=0.5, center_y=0.5), "radius"),
        (ShapeKind.ZIGZAG, ShapeParams(start_x=0.1, start_y=0.3, points=((0.1, 0.3),)), "2 points"),
    ],
)
def test_incomplete_parameters_raise_value_error(shape, params, missing) -> None:
    with pytest.raises(ValueError, match=missing):
        position_on_path(shape, params, 0.5, W, H)
