"""Session engine: scoring, streaks, the review queue and timed transitions.

The engine owns all mutable session state.  The presentation layer calls the
transition methods (``start_session``, ``submit_answer``, ``tick``, ``quit``,
``go_home``, ``restart``) and renders ``snapshot()``.  Time never comes from the
wall clock directly: the feedback hold and the Time Attack countdown are
cancellable tasks on a ``Scheduler`` driven by the injected ``Clock`` and
fired from ``update()``.

State machine::

    CONFIG --start_session--> PLAYING --quit / time out--> RESULTS
       ^                        |  ^                         |
       +-------go_home----------+  +---------restart---------+
"""

from __future__ import annotations

import dataclasses
import logging
import math
import random
import re
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock
from .questions import (
    Difficulty,
    Operation,
    Question,
    format_prompt,
    generate_hint,
    generate_question,
)
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)

ANSWER_TOLERANCE = 0.01
POINTS_PER_STREAK_STEP = 10
COUNTDOWN_INTERVAL_S = 1.0

# Trailing text after the number is ignored: "5-" reads as 5, "1.2.3" as 1.2.
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class GameMode(StrEnum):
    PRACTICE = "practice"
    TIME_ATTACK = "time_attack"


class GameState(StrEnum):
    CONFIG = "config"
    PLAYING = "playing"
    RESULTS = "results"


class Feedback(StrEnum):
    NONE = "none"
    CORRECT = "correct"
    WRONG = "wrong"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    operations: frozenset[Operation] = frozenset({Operation.ADDITION})
    difficulty: Difficulty = Difficulty.BEGINNER
    mode: GameMode = GameMode.PRACTICE
    time_budget_s: int = 60
    correct_hold_s: float = 0.6
    wrong_hold_s: float = 1.5
    review_probability: float = 0.3

    def __post_init__(self) -> None:
        # Accept any iterable of operations from callers.
        object.__setattr__(self, "operations", frozenset(self.operations))
        if self.time_budget_s <= 0:
            raise ValueError("time_budget_s must be > 0")
        if self.correct_hold_s < 0 or self.wrong_hold_s < 0:
            raise ValueError("feedback hold durations must be >= 0")
        if not (0.0 <= self.review_probability <= 1.0):
            raise ValueError("review_probability must be in [0.0, 1.0]")


@dataclass(slots=True)
class SessionStats:
    score: int = 0
    total_answered: int = 0
    correct_count: int = 0
    current_streak: int = 0
    max_streak: int = 0
    time_remaining: int = 0


@dataclass(frozen=True, slots=True)
class SessionSummary:
    score: int
    total_answered: int
    correct_count: int
    accuracy: int
    max_streak: int
    review_queue_length: int


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    state: GameState
    mode: GameMode | None
    question: Question | None
    prompt: str
    stats: SessionStats
    feedback: Feedback
    review_queue_length: int
    accuracy: int
    last_correct_answer: int | float | None = None
    hint: str | None = None


def compute_accuracy(correct_count: int, total_answered: int) -> int:
    if total_answered <= 0:
        return 0
    return round_half_up(correct_count / total_answered * 100)


def toggle_operation(operations: Iterable[Operation], op: Operation) -> frozenset[Operation]:
    """Add or remove ``op``; the last remaining operation cannot be removed."""

    current = frozenset(operations)
    if op in current:
        if len(current) == 1:
            return current
        return current - {op}
    return current | {op}


def round_half_up(x: float) -> int:
    # Halves round up: 1 of 8 correct reads 13%.
    return int(math.floor(x + 0.5))


def _parse_answer(raw: str) -> float:
    """Read the leading number of ``raw``; NaN when there is none."""

    match = _LEADING_NUMBER.match(raw)
    if match is None:
        return math.nan
    return float(match.group(0))


class SessionEngine:
    """Owns one player's session: stats, review queue and pending tasks.

    - Deterministic: questions and the review draw come from ``rng``.
    - Time is entirely via the injected Clock and the session's Scheduler.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        rng: random.Random | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._clock = clock
        self._rng = rng if rng is not None else random.Random()
        self._scheduler = scheduler if scheduler is not None else Scheduler(clock)

        self._state = GameState.CONFIG
        self._config: SessionConfig | None = None
        self._stats = SessionStats()
        self._review_queue: deque[Question] = deque()
        self._current: Question | None = None
        self._feedback = Feedback.NONE
        self._last_correct_answer: int | float | None = None
        self._hint_visible = False

        self._hold_task: ScheduledTask | None = None
        self._countdown_task: ScheduledTask | None = None

    # -- Queries ------------------------------------------------------------
    @property
    def state(self) -> GameState:
        return self._state

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def current_question(self) -> Question | None:
        return self._current

    @property
    def stats(self) -> SessionStats:
        return dataclasses.replace(self._stats)

    @property
    def feedback(self) -> Feedback:
        return self._feedback

    @property
    def review_queue(self) -> tuple[Question, ...]:
        return tuple(self._review_queue)

    @property
    def review_queue_length(self) -> int:
        return len(self._review_queue)

    @property
    def accuracy(self) -> int:
        return compute_accuracy(self._stats.correct_count, self._stats.total_answered)

    @property
    def last_correct_answer(self) -> int | float | None:
        return self._last_correct_answer

    @property
    def pending_feedback(self) -> bool:
        return self._feedback is not Feedback.NONE

    def hint(self) -> str | None:
        if self._current is None:
            return None
        return generate_hint(self._current)

    # -- Transitions --------------------------------------------------------
    def start_session(self, config: SessionConfig) -> None:
        """Reset stats and the review queue and deal the first question."""

        if not config.operations:
            raise ValueError("config.operations must not be empty")

        self._cancel_pending()
        self._config = config
        self._stats = SessionStats(time_remaining=int(config.time_budget_s))
        self._review_queue.clear()
        self._feedback = Feedback.NONE
        self._last_correct_answer = None
        self._hint_visible = False
        self._current = generate_question(config.operations, config.difficulty, rng=self._rng)
        self._state = GameState.PLAYING

        if config.mode is GameMode.TIME_ATTACK:
            self._countdown_task = self._scheduler.call_every(COUNTDOWN_INTERVAL_S, self.tick)

        logger.info(
            "session started: mode=%s difficulty=%s operations=%s",
            config.mode.value,
            config.difficulty.value,
            sorted(op.value for op in config.operations),
        )

    def restart(self) -> None:
        if self._config is None:
            raise RuntimeError("no session has been started")
        self.start_session(self._config)

    def submit_answer(self, raw: str) -> bool:
        """Score a typed answer. Returns True if it was accepted."""

        if self._state is not GameState.PLAYING or self._current is None:
            return False
        if self.pending_feedback:
            return False
        text = raw.strip()
        if text == "":
            return False

        assert self._config is not None
        question = self._current
        value = _parse_answer(text)
        # NaN never compares within tolerance, so unparsable input is wrong.
        correct = abs(value - question.answer) < ANSWER_TOLERANCE

        stats = self._stats
        stats.total_answered += 1
        if correct:
            stats.current_streak += 1
            stats.score += POINTS_PER_STREAK_STEP * stats.current_streak
            stats.correct_count += 1
            stats.max_streak = max(stats.max_streak, stats.current_streak)
            self._feedback = Feedback.CORRECT
            hold_s = self._config.correct_hold_s
        else:
            stats.current_streak = 0
            self._review_queue.append(question)
            self._last_correct_answer = question.answer
            self._feedback = Feedback.WRONG
            hold_s = self._config.wrong_hold_s

        logger.debug(
            "answer %r for %s: %s (score=%d streak=%d queue=%d)",
            text,
            question.key,
            self._feedback.value,
            stats.score,
            stats.current_streak,
            len(self._review_queue),
        )

        self._hold_task = self._scheduler.call_later(
            hold_s, lambda: self._install_next_question(answered=question, correct=correct)
        )
        return True

    def reveal_hint(self) -> None:
        if self._state is GameState.PLAYING and self._current is not None:
            self._hint_visible = True

    def tick(self) -> None:
        """Countdown step, invoked once per second while playing Time Attack."""

        if self._state is not GameState.PLAYING:
            return
        if self._config is None or self._config.mode is not GameMode.TIME_ATTACK:
            return
        if self._stats.time_remaining <= 1:
            self._stats.time_remaining = 0
            logger.info("time attack expired: score=%d", self._stats.score)
            self._end_session()
            return
        self._stats.time_remaining -= 1

    def quit(self) -> None:
        if self._state is not GameState.PLAYING:
            return
        logger.info("session quit: score=%d", self._stats.score)
        self._end_session()

    def go_home(self) -> None:
        self._cancel_pending()
        self._state = GameState.CONFIG
        self._feedback = Feedback.NONE
        self._hint_visible = False

    def update(self) -> None:
        """Fire scheduled tasks that are due (feedback hold, countdown)."""
        self._scheduler.run_due()

    # -- Results ------------------------------------------------------------
    def summary(self) -> SessionSummary:
        s = self._stats
        return SessionSummary(
            score=s.score,
            total_answered=s.total_answered,
            correct_count=s.correct_count,
            accuracy=self.accuracy,
            max_streak=s.max_streak,
            review_queue_length=len(self._review_queue),
        )

    def snapshot(self) -> SessionSnapshot:
        question = self._current if self._state is GameState.PLAYING else None
        return SessionSnapshot(
            state=self._state,
            mode=None if self._config is None else self._config.mode,
            question=question,
            prompt="" if question is None else format_prompt(question),
            stats=self.stats,
            feedback=self._feedback,
            review_queue_length=len(self._review_queue),
            accuracy=self.accuracy,
            last_correct_answer=self._last_correct_answer if self._feedback is Feedback.WRONG else None,
            hint=self.hint() if self._hint_visible and self._feedback is Feedback.NONE else None,
        )

    # -- Internals ----------------------------------------------------------
    def _install_next_question(self, *, answered: Question, correct: bool) -> None:
        self._hold_task = None
        if self._state is not GameState.PLAYING:
            return
        assert self._config is not None

        next_question: Question | None = None
        if correct and self._review_queue and self._rng.random() < self._config.review_probability:
            next_question = self._review_queue.popleft()
            logger.debug("resurfacing missed question %s", next_question.key)
        if next_question is None:
            next_question = generate_question(
                self._config.operations,
                self._config.difficulty,
                previous=answered,
                rng=self._rng,
            )

        self._current = next_question
        self._feedback = Feedback.NONE
        self._last_correct_answer = None
        self._hint_visible = False

    def _end_session(self) -> None:
        self._cancel_pending()
        self._state = GameState.RESULTS
        self._feedback = Feedback.NONE
        self._hint_visible = False

    def _cancel_pending(self) -> None:
        if self._hold_task is not None:
            self._hold_task.cancel()
            self._hold_task = None
        if self._countdown_task is not None:
            self._countdown_task.cancel()
            self._countdown_task = None
