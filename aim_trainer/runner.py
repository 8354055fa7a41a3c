from __future__ import annotations

import logging
from dataclasses import dataclass

from .catalog import (
    CLICKS_PER_SEQUENCE,
    DEFAULT_CATALOG,
    ClickSequenceSpec,
    TrackShapeSpec,
    TrialCatalog,
    TrialInstance,
    TrialKind,
    select_trials,
    validate_catalog,
)
from .clock import Clock, SystemWallClock, WallClock, now_ms
from .config import EngineConfig
from .engine_core import (
    Phase,
    Point,
    RandomSource,
    SeededRng,
    TrialStage,
    clamp01,
    distance,
    new_seed,
)
from .paths import position_on_path
from .results import ClickResult, RunSummary
from .scoring import Grade, score_click
from .timers import DelayedCall
from .tracking import TrackingSampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Feedback:
    """Most recent points/grade award, for transient on-screen feedback."""

    points: int
    grade: Grade
    x: float
    y: float
    at_ms: float


@dataclass(frozen=True, slots=True)
class RunnerSnapshot:
    """View model for the rendering layer (pure data)."""

    phase: Phase
    stage: TrialStage | None
    trial_index: int
    trial_count: int
    trial_kind: TrialKind | None
    trial_id: str | None
    track_spec: TrackShapeSpec | None
    click_index: int | None
    target: Point | None
    cursor: Point
    is_pressed: bool
    on_target: bool  # cursor within tracking_max_distance of the target
    canvas: tuple[int, int]
    tracking_points: int
    tracking_progress: float | None
    total_score: int
    countdown_remaining_s: float | None
    feedback: Feedback | None
    at_ms: float


@dataclass(slots=True)
class TrialRunState:
    """Per-trial mutable state. Replaced wholesale whenever a trial starts."""

    trial_index: int = 0
    stage: TrialStage | None = None
    click_index: int = 0
    click_started_ms: float = 0.0
    tracking_started_ms: float | None = None
    target: Point | None = None
    canvas: tuple[int, int] = (800, 600)
    tracking_points: int = 0


class TrialRunner:
    """State machine driving a run: idle -> countdown -> running -> complete.

    The host calls ``update()`` once per rendering frame and forwards pointer
    events as they arrive. Everything happens on the caller's thread; the
    tracking sampler and the delayed trial advance are polled from ``update()``
    and are stopped/cancelled whenever a trial ends or the run is aborted.

    Presses that arrive when nothing is waiting for them (no active trial,
    trial already finished and waiting to advance, tracking already started)
    are ignored.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        config: EngineConfig | None = None,
        catalog: TrialCatalog | None = None,
        rng: RandomSource | None = None,
        wall_clock: WallClock | None = None,
    ) -> None:
        cfg = config or EngineConfig()
        sc = cfg.scoring

        if cfg.total_trials < 1:
            raise ValueError("total_trials must be >= 1")
        if cfg.sampling_interval_ms <= 0.0:
            raise ValueError("sampling_interval_ms must be > 0")
        if cfg.advance_delay_ms < 0.0:
            raise ValueError("advance_delay_ms must be >= 0")
        if cfg.countdown_s < 0.0:
            raise ValueError("countdown_s must be >= 0")
        if cfg.canvas_width <= 0 or cfg.canvas_height <= 0:
            raise ValueError("canvas size must be > 0")
        if sc.target_radius <= 0.0:
            raise ValueError("target_radius must be > 0")
        if sc.tracking_max_distance <= 0.0:
            raise ValueError("tracking_max_distance must be > 0")
        if sc.max_reaction_time_ms <= 0.0:
            raise ValueError("max_reaction_time_ms must be > 0")
        if sc.max_click_points < 0 or sc.max_points_per_sample < 0.0:
            raise ValueError("point maxima must be >= 0")

        self._catalog = catalog or DEFAULT_CATALOG
        validate_catalog(self._catalog)

        self._clock = clock
        self._wall_clock = wall_clock or SystemWallClock()
        self._cfg = cfg
        self._rng: RandomSource = rng or SeededRng(new_seed())

        self._phase = Phase.IDLE
        self._trials: tuple[TrialInstance, ...] = ()
        self._canvas = (int(cfg.canvas_width), int(cfg.canvas_height))
        self._state = TrialRunState(canvas=self._canvas)
        self._countdown_started_ms = 0.0

        # Written by input handlers, read by the sampler (latest value wins).
        self._cursor: Point = (0.0, 0.0)
        self._pressed = False

        self._sampler: TrackingSampler | None = None
        self._pending_advance: DelayedCall | None = None

        self._summary = RunSummary()
        self._feedback: Feedback | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def config(self) -> EngineConfig:
        return self._cfg

    @property
    def catalog(self) -> TrialCatalog:
        return self._catalog

    @property
    def trials(self) -> tuple[TrialInstance, ...]:
        return self._trials

    @property
    def current_trial(self) -> TrialInstance | None:
        if self._phase is not Phase.RUNNING:
            return None
        return self._trials[self._state.trial_index]

    def summary(self) -> RunSummary:
        return self._summary

    # Run lifecycle

    def start_run(self) -> bool:
        if self._phase not in (Phase.IDLE, Phase.COMPLETE):
            return False

        self._trials = select_trials(self._catalog, count=self._cfg.total_trials, rng=self._rng)
        self._summary = RunSummary()
        self._feedback = None
        self._phase = Phase.COUNTDOWN
        self._countdown_started_ms = now_ms(self._clock)
        logger.info("run started with %d trials", len(self._trials))

        if self._cfg.countdown_s <= 0.0:
            self._begin_running()
        return True

    def abort(self) -> None:
        """Tear the run down early; safe in any phase."""

        self._stop_timers()
        if self._phase in (Phase.COUNTDOWN, Phase.RUNNING):
            logger.info(
                "run aborted at trial %d/%d, score %d",
                self._state.trial_index + 1,
                len(self._trials),
                self._summary.total_score,
            )
        self._summary.close()
        self._phase = Phase.IDLE
        self._state = TrialRunState(canvas=self._canvas)
        self._pressed = False

    def update(self) -> None:
        now = now_ms(self._clock)

        if self._phase is Phase.COUNTDOWN:
            if now - self._countdown_started_ms >= self._cfg.countdown_s * 1000.0:
                self._begin_running()
            return

        if self._phase is not Phase.RUNNING:
            return

        if self._state.stage is TrialStage.TRACKING:
            self._update_tracking(now)

        if self._pending_advance is not None:
            self._pending_advance.poll(now)

    # Input

    def pointer_move(self, x: float, y: float) -> None:
        self._cursor = (float(x), float(y))

    def pointer_down(self, x: float, y: float) -> bool:
        """Handle a press at canvas-local (x, y). Returns True if it was used."""

        self._cursor = (float(x), float(y))
        self._pressed = True

        if self._phase is not Phase.RUNNING:
            logger.debug("press ignored in phase %s", self._phase.value)
            return False

        stage = self._state.stage
        if stage is TrialStage.AWAITING_CLICK:
            self._register_click(self._cursor, now_ms(self._clock))
            return True
        if stage is TrialStage.AWAITING_PRESS:
            self._start_tracking(now_ms(self._clock))
            return True

        logger.debug("press ignored in stage %s", None if stage is None else stage.value)
        return False

    def pointer_up(self) -> None:
        self._pressed = False

    def resize(self, width: int, height: int) -> None:
        """Record a new canvas size; it applies from the next trial on."""

        if width <= 0 or height <= 0:
            return
        self._canvas = (int(width), int(height))

    # Snapshot

    def snapshot(self) -> RunnerSnapshot:
        now = now_ms(self._clock)
        trial = self.current_trial
        st = self._state

        countdown_remaining: float | None = None
        if self._phase is Phase.COUNTDOWN:
            elapsed_s = (now - self._countdown_started_ms) / 1000.0
            countdown_remaining = max(0.0, self._cfg.countdown_s - elapsed_s)

        target = st.target if trial is not None else None
        on_target = target is not None and (
            distance(self._cursor, target) <= self._cfg.scoring.tracking_max_distance
        )

        track_spec = None
        if trial is not None and isinstance(trial.spec, TrackShapeSpec):
            track_spec = trial.spec

        progress: float | None = None
        if track_spec is not None:
            if st.stage is TrialStage.AWAITING_PRESS:
                progress = 0.0
            elif st.stage is TrialStage.TRACKING and st.tracking_started_ms is not None:
                progress = self._progress(track_spec, now - st.tracking_started_ms)
            elif st.stage is TrialStage.FINISHED:
                progress = 1.0

        return RunnerSnapshot(
            phase=self._phase,
            stage=st.stage if trial is not None else None,
            trial_index=st.trial_index,
            trial_count=len(self._trials),
            trial_kind=None if trial is None else trial.kind,
            trial_id=None if trial is None else trial.trial_id,
            track_spec=track_spec,
            click_index=st.click_index if trial is not None and trial.kind is TrialKind.CLICK_SEQUENCE else None,
            target=target,
            cursor=self._cursor,
            is_pressed=self._pressed,
            on_target=on_target,
            canvas=st.canvas,
            tracking_points=st.tracking_points,
            tracking_progress=progress,
            total_score=self._summary.total_score,
            countdown_remaining_s=countdown_remaining,
            feedback=self._feedback,
            at_ms=now,
        )

    # Internals

    def _begin_running(self) -> None:
        self._phase = Phase.RUNNING
        self._start_trial(0, now_ms(self._clock))

    def _start_trial(self, index: int, now: float) -> None:
        trial = self._trials[index]
        self._state = TrialRunState(trial_index=index, canvas=self._canvas)
        self._pressed = False
        w, h = self._canvas

        spec = trial.spec
        if isinstance(spec, ClickSequenceSpec):
            x, y = spec.positions[0]
            self._state.stage = TrialStage.AWAITING_CLICK
            self._state.target = (x * w, y * h)
            self._state.click_started_ms = now
        else:
            self._state.stage = TrialStage.AWAITING_PRESS
            self._state.target = position_on_path(spec.shape, spec.params, 0.0, w, h)

        logger.debug(
            "trial %d/%d started: %s (instance %d)",
            index + 1,
            len(self._trials),
            trial.trial_id,
            trial.instance_id,
        )

    def _register_click(self, at: Point, now: float) -> None:
        trial = self._trials[self._state.trial_index]
        spec = trial.spec
        assert isinstance(spec, ClickSequenceSpec)
        st = self._state
        assert st.target is not None

        dist = distance(at, st.target)
        reaction_time = max(0.0, now - st.click_started_ms)
        scored = score_click(dist, reaction_time, config=self._cfg.scoring)

        self._summary.append(
            ClickResult(
                trial_id=trial.trial_id,
                instance_id=trial.instance_id,
                click_index=st.click_index,
                reaction_time_ms=reaction_time,
                distance=dist,
                points=scored.points,
                grade=scored.grade,
                target_x=st.target[0],
                target_y=st.target[1],
                click_x=at[0],
                click_y=at[1],
                timestamp_ms=self._wall_clock.now_ms(),
            )
        )
        self._feedback = Feedback(
            points=scored.points,
            grade=scored.grade,
            x=st.target[0],
            y=st.target[1],
            at_ms=now,
        )

        if st.click_index < CLICKS_PER_SEQUENCE - 1:
            st.click_index += 1
            x, y = spec.positions[st.click_index]
            w, h = st.canvas
            st.target = (x * w, y * h)
            st.click_started_ms = now
            return

        st.stage = TrialStage.FINISHED
        self._schedule_advance(now)

    def _start_tracking(self, now: float) -> None:
        trial = self._trials[self._state.trial_index]
        spec = trial.spec
        assert isinstance(spec, TrackShapeSpec)

        sampler = TrackingSampler(
            spec=spec,
            canvas=self._state.canvas,
            interval_ms=self._cfg.sampling_interval_ms,
            scoring=self._cfg.scoring,
        )
        sampler.start(now)
        self._sampler = sampler
        self._state.stage = TrialStage.TRACKING
        self._state.tracking_started_ms = now
        logger.debug("tracking started on %s", spec.trial_id)

    def _update_tracking(self, now: float) -> None:
        trial = self._trials[self._state.trial_index]
        spec = trial.spec
        assert isinstance(spec, TrackShapeSpec)
        st = self._state
        assert st.tracking_started_ms is not None

        if self._sampler is not None:
            self._sampler.poll(now, cursor=self._cursor, is_pressed=self._pressed)
            st.tracking_points = self._sampler.live_points

        elapsed = now - st.tracking_started_ms
        if elapsed >= spec.duration_ms:
            self._finish_tracking(trial, now)
            return

        # Frame-rate target refresh; display only, scoring uses the sampler.
        w, h = st.canvas
        st.target = position_on_path(spec.shape, spec.params, self._progress(spec, elapsed), w, h)

    def _finish_tracking(self, trial: TrialInstance, now: float) -> None:
        sampler = self._sampler
        assert sampler is not None
        self._sampler = None

        result = sampler.finish(instance_id=trial.instance_id, timestamp_ms=self._wall_clock.now_ms())
        self._summary.append(result)

        where = sampler.last_target or self._state.target or (0.0, 0.0)
        self._feedback = Feedback(
            points=result.points,
            grade=result.grade,
            x=where[0],
            y=where[1],
            at_ms=now,
        )
        self._state.tracking_points = result.points
        self._state.stage = TrialStage.FINISHED
        logger.debug(
            "tracking finished on %s: %d samples, accuracy %.2f, %d points",
            trial.trial_id,
            len(result.samples),
            result.accuracy,
            result.points,
        )
        self._schedule_advance(now)

    def _schedule_advance(self, now: float) -> None:
        self._pending_advance = DelayedCall(
            due_at_ms=now + self._cfg.advance_delay_ms,
            callback=self._advance,
        )

    def _advance(self) -> None:
        self._pending_advance = None
        next_index = self._state.trial_index + 1
        if next_index >= len(self._trials):
            self._phase = Phase.COMPLETE
            self._summary.close()
            logger.info(
                "run complete: %d trials, total score %d",
                len(self._trials),
                self._summary.total_score,
            )
            return
        self._start_trial(next_index, now_ms(self._clock))

    def _stop_timers(self) -> None:
        if self._sampler is not None:
            self._sampler.stop()
            self._sampler = None
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None

    @staticmethod
    def _progress(spec: TrackShapeSpec, elapsed_ms: float) -> float:
        if spec.duration_ms <= 0.0:
            return 1.0
        return clamp01(elapsed_ms / spec.duration_ms)


def build_trial_runner(
    *,
    clock: Clock,
    seed: int | None = None,
    config: EngineConfig | None = None,
    catalog: TrialCatalog | None = None,
    rng: RandomSource | None = None,
    wall_clock: WallClock | None = None,
) -> TrialRunner:
    if rng is None and seed is not None:
        rng = SeededRng(seed)
    return TrialRunner(
        clock=clock,
        config=config,
        catalog=catalog,
        rng=rng,
        wall_clock=wall_clock,
    )
