"""A work queue that retries failed tasks after a delay."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

Handler = Callable[[Any, Any], None]


@dataclass(frozen=True)
class Task:
    """A unit of work: apply ``handler`` to ``obj`` for ``event``.

    A handler signals failure by raising; the task is then retried.
    """

    handler: Handler
    obj: Any
    event: Any


class Queue:
    """Processes tasks in order until stopped; failed tasks are re-pushed later."""

    def __init__(self, error_delay: float) -> None:
        self.delay = error_delay
        self._items: deque[Task] = deque()
        self._cond = threading.Condition()
        self._closing = False

    def push(self, task: Task) -> None:
        with self._cond:
            if not self._closing:
                self._items.append(task)
            self._cond.notify()

    def _close_on(self, stop: threading.Event) -> None:
        stop.wait()
        with self._cond:
            self._closing = True
            self._cond.notify_all()

    def run(self, stop: threading.Event) -> None:
        """Process tasks until ``stop`` is set and the queue has drained."""
        threading.Thread(target=self._close_on, args=(stop,), daemon=True).start()
        while True:
            with self._cond:
                while not self._closing and not self._items:
                    self._cond.wait()
                if not self._items:
                    return
                task = self._items.popleft()
            try:
                task.handler(task.obj, task.event)
            except Exception as err:  # noqa: BLE001 - any handler failure is retried
                log.info(
                    "Work item handle failed (%s), retry after delay %ss", err, self.delay
                )
                timer = threading.Timer(self.delay, self.push, args=(task,))
                timer.daemon = True
                timer.start()


class ChainHandler:
    """Applies handlers in sequence, stopping at the first that raises."""

    def __init__(self) -> None:
        self.funcs: list[Handler] = []

    def apply(self, obj: Any, event: Any) -> None:
        for func in self.funcs:
            func(obj, event)

    def append(self, handler: Handler) -> None:
        self.funcs.append(handler)