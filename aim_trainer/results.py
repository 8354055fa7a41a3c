from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .catalog import TrialCatalog, catalog_to_mapping
from .scoring import Grade


@dataclass(frozen=True, slots=True)
class ClickResult:
    trial_id: str
    instance_id: int
    click_index: int
    reaction_time_ms: float
    distance: float
    points: int
    grade: Grade
    target_x: float
    target_y: float
    click_x: float
    click_y: float
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "trialId": self.trial_id,
            "instanceId": self.instance_id,
            "type": "click",
            "clickIndex": self.click_index,
            "reactionTime": self.reaction_time_ms,
            "distance": self.distance,
            "points": self.points,
            "grade": str(self.grade),
            "targetX": self.target_x,
            "targetY": self.target_y,
            "clickX": self.click_x,
            "clickY": self.click_y,
            "timestamp": self.timestamp_ms,
        }


@dataclass(frozen=True, slots=True)
class TrackSample:
    time_ms: float
    progress: float
    target_x: float
    target_y: float
    cursor_x: float
    cursor_y: float
    distance: float
    is_pressed: bool
    sample_points: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time_ms,
            "progress": self.progress,
            "targetX": self.target_x,
            "targetY": self.target_y,
            "cursorX": self.cursor_x,
            "cursorY": self.cursor_y,
            "distance": self.distance,
            "isClicking": self.is_pressed,
            "samplePoints": self.sample_points,
        }


@dataclass(frozen=True, slots=True)
class TrackResult:
    trial_id: str
    instance_id: int
    shape: str
    duration_ms: float
    accuracy: float  # held-time ratio
    average_distance: float
    points: int
    grade: Grade
    samples: tuple[TrackSample, ...]
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "trialId": self.trial_id,
            "instanceId": self.instance_id,
            "type": "track",
            "shape": self.shape,
            "duration": self.duration_ms,
            "accuracy": self.accuracy,
            "averageDistance": self.average_distance,
            "points": self.points,
            "grade": str(self.grade),
            "samples": [s.to_dict() for s in self.samples],
            "timestamp": self.timestamp_ms,
        }


TrialResult = ClickResult | TrackResult


@dataclass(frozen=True, slots=True)
class ClickStats:
    count: int
    perfect: int
    great: int
    mean_reaction_time_ms: float
    mean_distance: float
    points: int


@dataclass(frozen=True, slots=True)
class TrackStats:
    count: int
    mean_accuracy: float
    mean_distance: float
    perfect: int
    points: int


class RunSummary:
    """Ordered trial results plus the running total score.

    Appended to while a run is in flight and frozen by ``close()`` when the run
    completes. Points are never negative, so the total only grows.
    """

    def __init__(self) -> None:
        self._results: list[TrialResult] = []
        self._total_score = 0
        self._closed = False

    @property
    def total_score(self) -> int:
        return self._total_score

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def results(self) -> tuple[TrialResult, ...]:
        return tuple(self._results)

    def append(self, result: TrialResult) -> None:
        if self._closed:
            raise RuntimeError("run summary is closed")
        if result.points < 0:
            raise ValueError("points must be >= 0")
        self._results.append(result)
        self._total_score += int(result.points)

    def close(self) -> None:
        self._closed = True

    def click_results(self) -> list[ClickResult]:
        return [r for r in self._results if isinstance(r, ClickResult)]

    def track_results(self) -> list[TrackResult]:
        return [r for r in self._results if isinstance(r, TrackResult)]

    def click_stats(self) -> ClickStats:
        clicks = self.click_results()
        n = len(clicks)
        return ClickStats(
            count=n,
            perfect=sum(1 for c in clicks if c.grade is Grade.PERFECT),
            great=sum(1 for c in clicks if c.grade is Grade.GREAT),
            mean_reaction_time_ms=0.0 if n == 0 else sum(c.reaction_time_ms for c in clicks) / n,
            mean_distance=0.0 if n == 0 else sum(c.distance for c in clicks) / n,
            points=sum(c.points for c in clicks),
        )

    def track_stats(self) -> TrackStats:
        tracks = self.track_results()
        n = len(tracks)
        return TrackStats(
            count=n,
            mean_accuracy=0.0 if n == 0 else sum(t.accuracy for t in tracks) / n,
            mean_distance=0.0 if n == 0 else sum(t.average_distance for t in tracks) / n,
            perfect=sum(1 for t in tracks if t.grade is Grade.PERFECT),
            points=sum(t.points for t in tracks),
        )


def _utc_iso(epoch_s: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(epoch_s))


def run_summary_document(
    summary: RunSummary,
    *,
    total_trials: int,
    config: dict[str, Any],
    catalog: TrialCatalog | None = None,
    exported_at_s: float | None = None,
) -> dict[str, Any]:
    """JSON-ready export of a run: every result field, raw samples included.

    When ``catalog`` is given its trial definitions are added to the config
    block, so each result's ``trialId`` can be resolved to its targets or path.
    """

    when = time.time() if exported_at_s is None else float(exported_at_s)
    if catalog is not None:
        config = {**config, **catalog_to_mapping(catalog)}
    return {
        "totalScore": summary.total_score,
        "totalTrials": int(total_trials),
        "trials": [r.to_dict() for r in summary.results],
        "config": config,
        "exportedAt": _utc_iso(when),
    }


def write_export(path: Path, document: dict[str, Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    tmp_path.replace(path)
    return path
