from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .engine_core import round_half_up


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    # Clicks: points = max_click_points * accuracy_factor * time_factor
    target_radius: float = 40.0  # px; beyond this a click is a MISS
    max_click_points: int = 400
    max_reaction_time_ms: float = 1000.0  # time factor reaches 0 here

    # Tracking: per-sample points fall to 0 at tracking_max_distance.
    tracking_max_distance: float = 80.0
    max_points_per_sample: float = 5.0

    # Grade thresholds (labels only, never points).
    click_perfect_distance: float = 10.0
    click_great_distance: float = 25.0
    click_perfect_time_ms: float = 200.0
    click_great_time_ms: float = 400.0
    track_perfect_ratio: float = 0.9
    track_great_ratio: float = 0.7
    track_ok_ratio: float = 0.5


DEFAULT_SCORING = ScoringConfig()


class Grade(StrEnum):
    PERFECT = "PERFECT"
    GREAT = "GREAT"
    OK = "OK"
    POOR = "POOR"
    MISS = "MISS"


@dataclass(frozen=True, slots=True)
class ClickScore:
    points: int
    grade: Grade
    accuracy_factor: float
    time_factor: float


def score_click(
    distance: float,
    reaction_time_ms: float,
    *,
    config: ScoringConfig | None = None,
) -> ClickScore:
    """Score one click of a click sequence.

    Accuracy and speed combine multiplicatively, so a slow but precise click and
    a fast but wild one both tend towards zero. Anything outside the target
    radius is a MISS regardless of reaction time.
    """

    cfg = config or DEFAULT_SCORING
    d = max(0.0, float(distance))
    rt = max(0.0, float(reaction_time_ms))

    if d > cfg.target_radius:
        return ClickScore(points=0, grade=Grade.MISS, accuracy_factor=0.0, time_factor=0.0)

    accuracy_factor = max(0.0, 1.0 - d / cfg.target_radius)
    time_factor = max(0.0, 1.0 - rt / cfg.max_reaction_time_ms)
    points = round_half_up(cfg.max_click_points * accuracy_factor * time_factor)

    if d <= cfg.click_perfect_distance and rt <= cfg.click_perfect_time_ms:
        grade = Grade.PERFECT
    elif d <= cfg.click_great_distance and rt <= cfg.click_great_time_ms:
        grade = Grade.GREAT
    else:
        grade = Grade.OK

    return ClickScore(
        points=points,
        grade=grade,
        accuracy_factor=accuracy_factor,
        time_factor=time_factor,
    )


def score_tracking_sample(
    distance: float,
    is_pressed: bool,
    *,
    config: ScoringConfig | None = None,
) -> float:
    """Points for one tracking sample. Proximity without holding earns nothing."""

    if not is_pressed:
        return 0.0
    cfg = config or DEFAULT_SCORING
    factor = max(0.0, 1.0 - max(0.0, float(distance)) / cfg.tracking_max_distance)
    return cfg.max_points_per_sample * factor


def tracking_grade(accuracy: float, *, config: ScoringConfig | None = None) -> Grade:
    # accuracy is the held-time ratio, not a spatial measure.
    cfg = config or DEFAULT_SCORING
    if accuracy >= cfg.track_perfect_ratio:
        return Grade.PERFECT
    if accuracy >= cfg.track_great_ratio:
        return Grade.GREAT
    if accuracy >= cfg.track_ok_ratio:
        return Grade.OK
    return Grade.POOR
