"""Pygame UI shell for the Aim Trainer.

The window hosts a main menu and a trial screen. Timing, scoring, trial
selection and state live in the core modules (runner, tracking, scoring,
paths); this module only forwards pointer events to the runner, calls its
``update()`` once per frame, and draws its snapshot.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygame

from .clock import RealClock
from .config import EngineConfig, config_from_env, config_to_mapping
from .engine_core import Phase, TrialStage
from .paths import sample_path
from .results import run_summary_document, write_export
from .runner import RunnerSnapshot, TrialRunner, build_trial_runner
from .scoring import Grade

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 720)
TARGET_FPS = 60
FEEDBACK_MS = 1000.0

EXPORT_DIR_ENV = "AIM_TRAINER_EXPORT_DIR"

TRACK_IDLE = (34, 211, 238)
TRACK_ON_TARGET = (16, 185, 129)

GRADE_COLORS: dict[Grade, tuple[int, int, int]] = {
    Grade.PERFECT: (34, 211, 238),
    Grade.GREAT: (168, 85, 247),
    Grade.OK: (250, 204, 21),
    Grade.POOR: (248, 113, 113),
    Grade.MISS: (107, 114, 128),
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None:
        ...

    def render(self, surface: pygame.Surface) -> None:
        ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface) -> None:
        self._surface = surface
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def surface(self) -> pygame.Surface:
        return self._surface

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the root screen; it handles its own quit.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if event.type == pygame.VIDEORESIZE:
            self._surface = pygame.display.get_surface() or self._surface
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 56)
        self._item_font = pygame.font.Font(None, 34)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill((10, 10, 18))

        title = self._title_font.render(self._title, True, (236, 72, 153))
        surface.blit(title, title.get_rect(center=(w // 2, h // 4)))

        y = h // 2 - (len(self._items) * 44) // 2
        for idx, item in enumerate(self._items):
            selected = idx == self._selected
            row = pygame.Rect(w // 2 - 140, y, 280, 38)
            if selected:
                pygame.draw.rect(surface, (34, 211, 238), row, border_radius=8)
            else:
                pygame.draw.rect(surface, (40, 44, 60), row, 1, border_radius=8)
            color = (10, 10, 18) if selected else (230, 232, 240)
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, text.get_rect(center=row.center))
            y += 44

        foot = self._hint_font.render("Up/Down: Move  |  Enter: Select  |  Esc: Back", True, (140, 146, 160))
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 16)))


class TrialRunScreen:
    """Plays one run: countdown, trials, then the results page."""

    def __init__(
        self,
        app: App,
        *,
        runner_factory: Callable[[], TrialRunner],
        export_dir: Path | None = None,
    ) -> None:
        self._app = app
        self._runner = runner_factory()
        self._export_dir = export_dir
        self._message: str | None = None

        self._big_font = pygame.font.Font(None, 120)
        self._mid_font = pygame.font.Font(None, 44)
        self._small_font = pygame.font.Font(None, 26)

        w, h = app.surface.get_size()
        self._runner.resize(w, h)
        self._runner.start_run()

    @property
    def runner(self) -> TrialRunner:
        return self._runner

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.MOUSEMOTION:
            x, y = event.pos
            self._runner.pointer_move(x, y)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            x, y = event.pos
            self._runner.pointer_down(x, y)
            return
        if event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self._runner.pointer_up()
            return
        if event.type == pygame.WINDOWLEAVE:
            # Leaving the window counts as letting go.
            self._runner.pointer_up()
            return
        if event.type == pygame.VIDEORESIZE:
            self._runner.resize(event.w, event.h)
            return
        if event.type != pygame.KEYDOWN:
            return

        if event.key == pygame.K_ESCAPE:
            self._leave()
        elif self._runner.phase is Phase.COMPLETE:
            if event.key == pygame.K_e:
                self._export()
            elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._leave()

    def _leave(self) -> None:
        # Stops the sampler and any pending advance before the screen goes away.
        self._runner.abort()
        self._app.pop()

    def _export(self) -> None:
        runner = self._runner
        document = run_summary_document(
            runner.summary(),
            total_trials=len(runner.trials),
            config=config_to_mapping(runner.config),
            catalog=runner.catalog,
        )
        out_dir = self._export_dir or Path(os.environ.get(EXPORT_DIR_ENV, "") or Path.cwd())
        path = out_dir / f"aim-trainer-{int(time.time() * 1000)}.json"
        try:
            write_export(path, document)
        except OSError as exc:
            logger.warning("export to %s failed: %s", path, exc)
            self._message = f"Export failed: {exc}"
            return
        logger.info("exported run to %s", path)
        self._message = f"Saved {path.name}"

    def render(self, surface: pygame.Surface) -> None:
        self._runner.update()
        snap = self._runner.snapshot()
        surface.fill((10, 10, 18))

        if snap.phase is Phase.COUNTDOWN:
            self._render_countdown(surface, snap)
        elif snap.phase is Phase.RUNNING:
            self._render_trial(surface, snap)
        elif snap.phase is Phase.COMPLETE:
            self._render_results(surface, snap)

    def _render_countdown(self, surface: pygame.Surface, snap: RunnerSnapshot) -> None:
        w, h = surface.get_size()
        remaining = snap.countdown_remaining_s or 0.0
        label = str(max(1, int(remaining + 0.999)))
        text = self._big_font.render(label, True, (236, 72, 153))
        surface.blit(text, text.get_rect(center=(w // 2, h // 2)))

    def _render_trial(self, surface: pygame.Surface, snap: RunnerSnapshot) -> None:
        scoring = self._runner.config.scoring
        cw, ch = snap.canvas

        if snap.track_spec is not None:
            preview = sample_path(snap.track_spec.shape, snap.track_spec.params, cw, ch, steps=96)
            pygame.draw.lines(surface, (40, 60, 80), False, [(int(x), int(y)) for x, y in preview], 2)

        if snap.target is not None:
            tx, ty = int(snap.target[0]), int(snap.target[1])
            if snap.stage is TrialStage.TRACKING or snap.stage is TrialStage.AWAITING_PRESS:
                halo = int(scoring.tracking_max_distance)
                pygame.draw.circle(surface, (22, 78, 99), (tx, ty), halo, 1)
                fill = TRACK_ON_TARGET if snap.is_pressed and snap.on_target else TRACK_IDLE
                pygame.draw.circle(surface, fill, (tx, ty), 18)
            else:
                pygame.draw.circle(surface, (236, 72, 153), (tx, ty), int(scoring.target_radius), 3)
                pygame.draw.circle(surface, (236, 72, 153), (tx, ty), 6)

        cx, cy = int(snap.cursor[0]), int(snap.cursor[1])
        cursor_color = (250, 250, 250) if snap.is_pressed else (150, 150, 160)
        pygame.draw.circle(surface, cursor_color, (cx, cy), 6, 0 if snap.is_pressed else 2)

        hud = f"Trial {snap.trial_index + 1}/{snap.trial_count}   Score {snap.total_score}"
        if snap.stage is TrialStage.AWAITING_CLICK and snap.click_index is not None:
            hud += f"   Click {snap.click_index + 1}/5"
        if snap.stage is TrialStage.TRACKING:
            hud += f"   Tracking +{snap.tracking_points}"
        surface.blit(self._small_font.render(hud, True, (220, 224, 235)), (16, 12))

        if snap.stage is TrialStage.AWAITING_PRESS:
            hint = self._small_font.render("Press and hold to start tracking", True, (160, 170, 190))
            surface.blit(hint, hint.get_rect(midbottom=(cw // 2, ch - 16)))

        self._render_feedback(surface, snap)

    def _render_feedback(self, surface: pygame.Surface, snap: RunnerSnapshot) -> None:
        fb = snap.feedback
        if fb is None:
            return
        age = snap.at_ms - fb.at_ms
        if age < 0.0 or age >= FEEDBACK_MS:
            return
        frac = age / FEEDBACK_MS
        offset = int(frac * 50)
        color = GRADE_COLORS.get(fb.grade, (255, 255, 255))
        grade = self._mid_font.render(fb.grade.value, True, color)
        points = self._small_font.render(f"+{fb.points}", True, (255, 255, 255))
        cx, top = int(fb.x), int(fb.y) - 60 - offset
        surface.blit(grade, grade.get_rect(midbottom=(cx, top)))
        surface.blit(points, points.get_rect(midtop=(cx, top + 2)))

    def _render_results(self, surface: pygame.Surface, snap: RunnerSnapshot) -> None:
        w, h = surface.get_size()
        summary = self._runner.summary()
        clicks = summary.click_stats()
        tracks = summary.track_stats()

        title = self._mid_font.render("COMPLETE!", True, (74, 222, 128))
        surface.blit(title, title.get_rect(center=(w // 2, h // 6)))
        total = self._big_font.render(f"{snap.total_score:,}", True, (251, 191, 36))
        surface.blit(total, total.get_rect(center=(w // 2, h // 6 + 90)))

        left = [
            "CLICK SEQUENCES",
            f"Perfect: {clicks.perfect}",
            f"Great: {clicks.great}",
            f"Avg RT: {round(clicks.mean_reaction_time_ms)}ms",
            f"Avg Dist: {round(clicks.mean_distance)}px",
            f"Points: {clicks.points:,}",
        ]
        right = [
            "TRACKING",
            f"Click Time: {round(tracks.mean_accuracy * 100)}%",
            f"Avg Dist: {round(tracks.mean_distance)}px",
            f"Perfect: {tracks.perfect}",
            f"Points: {tracks.points:,}",
        ]
        y0 = h // 2 - 20
        for col_x, lines in ((w // 4, left), (w // 2 + 40, right)):
            for i, line in enumerate(lines):
                color = (236, 72, 153) if i == 0 else (200, 204, 214)
                surface.blit(self._small_font.render(line, True, color), (col_x, y0 + i * 28))

        hint = "E: Export JSON  |  Enter/Esc: Back"
        foot = self._small_font.render(hint, True, (140, 146, 160))
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 16)))
        if self._message:
            msg = self._small_font.render(self._message, True, (220, 224, 235))
            surface.blit(msg, msg.get_rect(midbottom=(w // 2, h - 44)))


_REAL_CLOCK = RealClock()


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: EngineConfig | None = None,
) -> int:
    cfg = config or config_from_env()

    pygame.init()
    pygame.display.set_caption("Aim Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    clock = pygame.time.Clock()

    app = App(surface=surface)

    def open_run() -> None:
        app.push(
            TrialRunScreen(
                app,
                runner_factory=lambda: build_trial_runner(clock=_REAL_CLOCK, config=cfg),
            )
        )

    app.push(
        MenuScreen(
            app,
            "AIM TRAINER",
            [
                MenuItem("Start", open_run),
                MenuItem("Quit", app.quit),
            ],
            is_root=True,
        )
    )

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
