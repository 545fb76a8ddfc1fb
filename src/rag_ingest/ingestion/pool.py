"""Bounded worker pool for the embed + upsert fan-out."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A unit of work and the label used to report on it."""

    label: str
    fn: Callable[[], Any]


@dataclass
class TaskOutcome:
    label: str
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkPool:
    """Run tasks with at most ``concurrency_limit`` bodies in flight.

    Tasks are started in submission order; they may finish in any order.
    An exception raised by one task is recorded in its
    :class:`TaskOutcome` and never cancels the others.

    Parameters
    ----------
    concurrency_limit:
        Maximum number of task bodies executing at the same time.
    """

    def __init__(self, concurrency_limit: int = 5) -> None:
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self.concurrency_limit = concurrency_limit
        self._slots = threading.BoundedSemaphore(concurrency_limit)
        self._lock = threading.Lock()
        self._active = 0
        self.peak_concurrency = 0

    def run(self, tasks: Sequence[Task]) -> list[TaskOutcome]:
        """Execute *tasks* and block until every one has finished.

        Returns the outcomes in submission order.
        """
        if not tasks:
            return []
        workers = min(self.concurrency_limit, len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as executor:
            futures = [executor.submit(self._execute, task) for task in tasks]
            return [future.result() for future in futures]

    def _execute(self, task: Task) -> TaskOutcome:
        with self._slots:
            with self._lock:
                self._active += 1
                self.peak_concurrency = max(self.peak_concurrency, self._active)
            try:
                return TaskOutcome(task.label, value=task.fn())
            except Exception as exc:
                logger.debug("Task %s failed: %s", task.label, exc)
                return TaskOutcome(task.label, error=exc)
            finally:
                with self._lock:
                    self._active -= 1
