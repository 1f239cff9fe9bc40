"""Elapsed-time keyed queue of deferred actions.

Replaces blocking waits: a "wait N then do X" is queued here and resumed on
the first ``advance`` whose accumulated time crosses the due time.
"""
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class ScheduledAction:
    """Handle for a queued callback."""

    due: float
    callback: Callable[..., Any]
    args: tuple[Any, ...] = ()
    cancelled: bool = False
    done: bool = False

    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)


@dataclass(order=True)
class _QueueEntry:
    due: float
    seq: int
    action: ScheduledAction = field(compare=False)


class Scheduler:
    """Single-threaded scheduler driven by explicit elapsed-time ticks."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[_QueueEntry] = []
        self._counter = itertools.count()

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> ScheduledAction:
        """
        Queue ``callback(*args)`` to run once ``delay`` time units have elapsed.

        A non-positive delay runs on the next ``advance`` (including a zero
        advance), never synchronously.
        """
        action = ScheduledAction(due=self.now + max(delay, 0.0), callback=callback, args=args)
        heapq.heappush(self._queue, _QueueEntry(action.due, next(self._counter), action))
        return action

    def advance(self, dt: float) -> int:
        """
        Advance the clock by ``dt`` and run every action that has come due.

        Actions run in due-time order, FIFO among equal due times. Actions
        queued by a callback run in the same advance if already due.

        Returns the number of callbacks executed.
        """
        if dt < 0:
            raise ValueError(f"Elapsed time must be non-negative, got {dt}")
        self.now += dt
        executed = 0
        while self._queue and self._queue[0].due <= self.now:
            action = heapq.heappop(self._queue).action
            if action.cancelled:
                continue
            action.done = True
            action.callback(*action.args)
            executed += 1
        return executed

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._queue if entry.action.pending)

    def clear(self) -> None:
        """Cancel everything still queued."""
        for entry in self._queue:
            entry.action.cancel()
        self._queue.clear()
