from __future__ import annotations

from .catalog import TrackShapeSpec
from .engine_core import Point, distance, round_half_up
from .paths import position_on_path
from .results import TrackResult, TrackSample
from .scoring import ScoringConfig, score_tracking_sample, tracking_grade
from .timers import FixedStepTimer


class TrackingSampler:
    """Fixed-period sampler for one tracking trial.

    Each tick recomputes the target on the path, reads whatever cursor and
    pressed state were last observed (they may be stale between input events),
    scores the sample and accumulates it. Ticks only count while progress is
    within [0, 1]; anything past the trial's duration is dropped.
    """

    def __init__(
        self,
        *,
        spec: TrackShapeSpec,
        canvas: tuple[int, int],
        interval_ms: float,
        scoring: ScoringConfig,
    ) -> None:
        self._spec = spec
        self._canvas = canvas
        self._scoring = scoring
        self._timer = FixedStepTimer(interval_ms=interval_ms)
        self._samples: list[TrackSample] = []
        self._accumulated = 0.0
        self._last_target: Point | None = None

    @property
    def running(self) -> bool:
        return self._timer.running

    @property
    def samples(self) -> tuple[TrackSample, ...]:
        return tuple(self._samples)

    @property
    def accumulated_points(self) -> float:
        return self._accumulated

    @property
    def live_points(self) -> int:
        return round_half_up(self._accumulated)

    @property
    def last_target(self) -> Point | None:
        return self._last_target

    def start(self, started_at_ms: float) -> None:
        self._samples.clear()
        self._accumulated = 0.0
        self._last_target = None
        self._timer.start(started_at_ms)

    def stop(self) -> None:
        self._timer.stop()

    def poll(self, now_ms: float, *, cursor: Point, is_pressed: bool) -> int:
        """Take every sample that fell due by ``now_ms``. Returns how many were taken."""

        duration = float(self._spec.duration_ms)
        taken = 0
        for elapsed in self._timer.due(now_ms):
            if elapsed > duration:
                continue
            progress = 1.0 if duration <= 0.0 else elapsed / duration
            self._take_sample(elapsed, progress, cursor, is_pressed)
            taken += 1
        return taken

    def _take_sample(self, elapsed_ms: float, progress: float, cursor: Point, is_pressed: bool) -> None:
        w, h = self._canvas
        target = position_on_path(self._spec.shape, self._spec.params, progress, w, h)
        dist = distance(cursor, target)
        points = score_tracking_sample(dist, is_pressed, config=self._scoring)
        self._accumulated += points
        self._last_target = target
        self._samples.append(
            TrackSample(
                time_ms=elapsed_ms,
                progress=progress,
                target_x=target[0],
                target_y=target[1],
                cursor_x=float(cursor[0]),
                cursor_y=float(cursor[1]),
                distance=dist,
                is_pressed=bool(is_pressed),
                sample_points=points,
            )
        )

    def finish(self, *, instance_id: int, timestamp_ms: int) -> TrackResult:
        """Stop sampling and summarise the trial."""

        self.stop()
        n = len(self._samples)
        pressed = sum(1 for s in self._samples if s.is_pressed)
        accuracy = 0.0 if n == 0 else pressed / n
        avg_distance = 0.0 if n == 0 else sum(s.distance for s in self._samples) / n
        return TrackResult(
            trial_id=self._spec.trial_id,
            instance_id=int(instance_id),
            shape=str(self._spec.shape),
            duration_ms=float(self._spec.duration_ms),
            accuracy=accuracy,
            average_distance=avg_distance,
            points=round_half_up(self._accumulated),
            grade=tracking_grade(accuracy, config=self._scoring),
            samples=tuple(self._samples),
            timestamp_ms=int(timestamp_ms),
        )
