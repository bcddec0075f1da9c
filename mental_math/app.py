"""Pygame UI shell for the mental math trainer.

Screens:
- Main Menu (start practice, quit)
- Session setup (operations, difficulty, mode)
- Session (question, typed answer, feedback, hint, countdown, results)

Deterministic question/scoring/timing state lives in mental_math.session and
mental_math.questions; this module only renders snapshots and forwards input.
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .questions import Difficulty, Operation, exercise_name, format_number
from .session import (
    Feedback,
    GameMode,
    GameState,
    SessionConfig,
    SessionEngine,
    SessionSnapshot,
    toggle_operation,
)

logger = logging.getLogger(__name__)

SEED_ENV = "MENTAL_MATH_SEED"

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (10, 10, 14)
TEXT_MAIN = (235, 235, 245)
TEXT_MUTED = (140, 140, 150)
TEXT_GOOD = (180, 220, 180)
TEXT_BAD = (220, 180, 180)

_OPERATION_ORDER: tuple[Operation, ...] = tuple(Operation)
_DIFFICULTY_ORDER: tuple[Difficulty, ...] = tuple(Difficulty)
_MODE_ORDER: tuple[GameMode, ...] = tuple(GameMode)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
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
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
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
        surface.fill(BG)
        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, (40, 40))
        y = 120
        for i, item in enumerate(self._items):
            active = i == self._selected
            label = f"> {item.label}" if active else f"  {item.label}"
            text = self._item_font.render(label, True, TEXT_MAIN if active else TEXT_MUTED)
            surface.blit(text, (60, y))
            y += 40


class ConfigScreen:
    """Session setup: operation toggles, difficulty and mode.

    Keys 1-8 toggle operations directly.  Up/Down move the cursor, Space or
    Left/Right change the highlighted row, Enter starts the session.
    """

    def __init__(self, app: App, *, on_start: Callable[[SessionConfig], None]) -> None:
        self._app = app
        self._on_start = on_start
        self._operations: frozenset[Operation] = frozenset({Operation.ADDITION})
        self._difficulty = Difficulty.BEGINNER
        self._mode = GameMode.PRACTICE
        self._row = 0
        self._small_font = pygame.font.Font(None, 28)

    @property
    def config(self) -> SessionConfig:
        return SessionConfig(operations=self._operations, difficulty=self._difficulty, mode=self._mode)

    def _row_count(self) -> int:
        # Operations, then difficulty, mode and start.
        return len(_OPERATION_ORDER) + 3

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
            return
        if event.unicode and event.unicode in "12345678":
            self._operations = toggle_operation(self._operations, _OPERATION_ORDER[int(event.unicode) - 1])
            return
        if key in (pygame.K_UP, pygame.K_w):
            self._row = (self._row - 1) % self._row_count()
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._row = (self._row + 1) % self._row_count()
        elif key in (pygame.K_LEFT, pygame.K_RIGHT, pygame.K_SPACE):
            self._change_row(-1 if key == pygame.K_LEFT else 1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._on_start(self.config)

    def _change_row(self, delta: int) -> None:
        n_ops = len(_OPERATION_ORDER)
        if self._row < n_ops:
            self._operations = toggle_operation(self._operations, _OPERATION_ORDER[self._row])
        elif self._row == n_ops:
            i = _DIFFICULTY_ORDER.index(self._difficulty)
            self._difficulty = _DIFFICULTY_ORDER[(i + delta) % len(_DIFFICULTY_ORDER)]
        elif self._row == n_ops + 1:
            i = _MODE_ORDER.index(self._mode)
            self._mode = _MODE_ORDER[(i + delta) % len(_MODE_ORDER)]
        else:
            self._on_start(self.config)

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        font = self._app.font
        surface.blit(font.render("Session Setup", True, TEXT_MAIN), (40, 30))
        y = 80
        for i, op in enumerate(_OPERATION_ORDER):
            mark = "[x]" if op in self._operations else "[ ]"
            self._blit_row(surface, i, f"{i + 1}. {mark} {exercise_name(op)}", y)
            y += 30
        y += 10
        n_ops = len(_OPERATION_ORDER)
        self._blit_row(surface, n_ops, f"Difficulty: {self._difficulty.value.title()}", y)
        self._blit_row(surface, n_ops + 1, f"Mode: {self._mode.value.replace('_', ' ').title()}", y + 30)
        self._blit_row(surface, n_ops + 2, "Start", y + 60)

        hint = self._small_font.render("Enter to start, Esc to go back", True, TEXT_MUTED)
        surface.blit(hint, (40, surface.get_height() - 40))

    def _blit_row(self, surface: pygame.Surface, row: int, label: str, y: int) -> None:
        active = row == self._row
        colour = TEXT_MAIN if active else TEXT_MUTED
        text = self._small_font.render(("> " if active else "  ") + label, True, colour)
        surface.blit(text, (60, y))


class SessionScreen:
    """Renders a running session and forwards typed answers to the engine."""

    def __init__(self, app: App, *, engine: SessionEngine) -> None:
        self._app = app
        self._engine = engine
        self._input = ""
        self._big_font = pygame.font.Font(None, 96)
        self._mid_font = pygame.font.Font(None, 52)
        self._small_font = pygame.font.Font(None, 28)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        state = self._engine.state

        if state is GameState.RESULTS:
            if event.key == pygame.K_r:
                self._input = ""
                self._engine.restart()
            elif event.key in (pygame.K_ESCAPE, pygame.K_RETURN, pygame.K_KP_ENTER):
                self._leave()
            return
        if state is not GameState.PLAYING:
            self._leave()
            return

        if event.key == pygame.K_ESCAPE:
            self._engine.quit()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if self._engine.submit_answer(self._input):
                self._input = ""
        elif event.key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
        elif event.key == pygame.K_h:
            self._engine.reveal_hint()
        elif event.unicode and (event.unicode.isdigit() or event.unicode in ".-"):
            if not self._engine.pending_feedback:
                self._input += event.unicode

    def _leave(self) -> None:
        self._engine.go_home()
        self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        surface.fill(BG)
        if snap.state is GameState.RESULTS:
            self._render_results(surface, snap)
        elif snap.state is GameState.PLAYING:
            self._render_playing(surface, snap)

    def _render_playing(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        s = snap.stats
        header = f"Score: {s.score}   Streak: {s.current_streak}   Accuracy: {snap.accuracy}%"
        if snap.review_queue_length:
            header += f"   Review: {snap.review_queue_length}"
        surface.blit(self._small_font.render(header, True, TEXT_MAIN), (40, 30))
        if snap.mode is GameMode.TIME_ATTACK:
            timer = self._small_font.render(f"Time: {s.time_remaining:02d}s", True, TEXT_MAIN)
            surface.blit(timer, (surface.get_width() - 160, 30))

        surface.blit(self._big_font.render(snap.prompt, True, TEXT_MAIN), (60, 140))
        surface.blit(self._mid_font.render(self._input or "_", True, TEXT_MAIN), (60, 240))

        if snap.feedback is Feedback.CORRECT:
            surface.blit(self._mid_font.render("Correct!", True, TEXT_GOOD), (60, 310))
        elif snap.feedback is Feedback.WRONG and snap.last_correct_answer is not None:
            msg = f"Incorrect, answer is {format_number(snap.last_correct_answer)}"
            surface.blit(self._mid_font.render(msg, True, TEXT_BAD), (60, 310))

        if snap.hint:
            surface.blit(self._small_font.render(snap.hint, True, TEXT_MUTED), (60, 380))

        footer = "Enter: submit   H: hint   Esc: finish"
        surface.blit(self._small_font.render(footer, True, TEXT_MUTED), (40, surface.get_height() - 40))

    def _render_results(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        summary = self._engine.summary()
        lines = [
            "Session Complete",
            "",
            f"Score: {summary.score}",
            f"Answered: {summary.total_answered}",
            f"Correct: {summary.correct_count}",
            f"Accuracy: {summary.accuracy}%",
            f"Best streak: {summary.max_streak}",
            f"Left to review: {summary.review_queue_length}",
            "",
            "R: play again   Enter/Esc: back to menu",
        ]
        y = 60
        for line in lines:
            surface.blit(self._app.font.render(line, True, TEXT_MAIN), (40, y))
            y += 36


def _new_seed() -> int:
    raw = os.environ.get(SEED_ENV)
    if raw:
        return int(raw)
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("Mental Math Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()

    def start_session(config: SessionConfig) -> None:
        seed = _new_seed()
        logger.info("starting session with seed=%d", seed)
        engine = SessionEngine(clock=real_clock, rng=random.Random(seed))
        engine.start_session(config)
        app.pop()
        app.push(SessionScreen(app, engine=engine))

    def open_setup() -> None:
        app.push(ConfigScreen(app, on_start=start_session))

    main_items = [
        MenuItem("Start Practice", open_setup),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Mental Math Trainer", main_items, is_root=True))

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
