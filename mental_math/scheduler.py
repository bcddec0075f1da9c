"""Cancellable delayed and recurring callbacks driven by an injected clock.

Nothing here runs on its own: the owner polls :meth:`Scheduler.run_due` (the
UI loop does it once per frame through ``SessionEngine.update``) and every
task whose due time has been reached fires in due order.  Tests drive the
same code with a ``FakeClock``.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable

from .clock import Clock

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle for a pending callback. Cancelling is idempotent."""

    def __init__(
        self,
        *,
        due_at_s: float,
        callback: Callable[[], None],
        interval_s: float | None,
        seq: int,
    ) -> None:
        self.due_at_s = float(due_at_s)
        self.interval_s = interval_s
        self._callback = callback
        self._seq = seq
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def _sort_key(self) -> tuple[float, int]:
        return (self.due_at_s, self._seq)


class Scheduler:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._tasks: list[ScheduledTask] = []
        self._seq = itertools.count()

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._tasks if not t.cancelled)

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledTask:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        task = ScheduledTask(
            due_at_s=self._clock.now() + float(delay_s),
            callback=callback,
            interval_s=None,
            seq=next(self._seq),
        )
        self._tasks.append(task)
        return task

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> ScheduledTask:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        task = ScheduledTask(
            due_at_s=self._clock.now() + float(interval_s),
            callback=callback,
            interval_s=float(interval_s),
            seq=next(self._seq),
        )
        self._tasks.append(task)
        return task

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def run_due(self) -> int:
        """Fire every task that is due. Returns the number of callbacks run."""

        now = self._clock.now()
        fired = 0
        while True:
            # Callbacks may cancel or add tasks, so re-evaluate after each one.
            self._tasks = [t for t in self._tasks if not t.cancelled]
            due = [t for t in self._tasks if t.due_at_s <= now]
            if not due:
                break
            task = min(due, key=ScheduledTask._sort_key)
            if task.interval_s is None:
                self._tasks.remove(task)
            else:
                task.due_at_s += task.interval_s
            task._callback()
            fired += 1
        if fired:
            logger.debug("fired %d scheduled task(s) at t=%.3f", fired, now)
        return fired
