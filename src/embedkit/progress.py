"""Progress aggregation and user notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from tqdm import tqdm

from .validation import render_template

PENDING = "pending"
DONE = "done"
CANCELED = "canceled"


class Task:
    """One unit of work tracked by a NotificationAggregator."""

    def __init__(self, aggregator: NotificationAggregator) -> None:
        self._aggregator = aggregator
        self.state = PENDING

    def done(self) -> None:
        if self.state != PENDING:
            return
        self.state = DONE
        self._aggregator._on_task_done(self)

    def cancel(self) -> None:
        if self.state != PENDING:
            return
        self.state = CANCELED
        self._aggregator._on_task_canceled(self)

    def is_done(self) -> bool:
        return self.state == DONE

    def is_canceled(self) -> bool:
        return self.state == CANCELED


class NotificationAggregator:
    """Groups concurrent tasks into one progress display.

    The display is created with the first task and closed once every task
    finished; ``finished`` listeners run exactly once.
    """

    def __init__(
        self,
        message_many: str,
        message_one: str,
        *,
        show_progress: bool = True,
        logger: logging.Logger | None = None,
        bar_factory: Callable[..., Any] = tqdm,
    ) -> None:
        self._message_many = message_many
        self._message_one = message_one
        self._show_progress = show_progress
        self._logger = logger or logging.getLogger("embedkit")
        self._bar_factory = bar_factory
        self._bar: Any = None
        self._tasks: list[Task] = []
        self._finished = False
        self._listeners: list[Callable[[], None]] = []

    def create_task(self) -> Task:
        if self._finished:
            raise RuntimeError("Cannot add tasks to a finished aggregator.")
        task = Task(self)
        self._tasks.append(task)
        self._update_display()
        return task

    def on_finished(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def is_finished(self) -> bool:
        return self._finished

    def get_task_count(self) -> int:
        return len(self._tasks)

    def get_done_task_count(self) -> int:
        return sum(1 for task in self._tasks if task.is_done())

    def get_message(self) -> str:
        if self.get_task_count() == 1:
            return self._message_one
        return render_template(
            self._message_many,
            {"current": self.get_done_task_count(), "max": self.get_task_count()},
        )

    def _on_task_done(self, task: Task) -> None:
        if self._bar is not None:
            self._bar.update(1)
        self._check_finished()

    def _on_task_canceled(self, task: Task) -> None:
        self._tasks = [item for item in self._tasks if item is not task]
        self._check_finished()

    def _check_finished(self) -> None:
        if self._finished:
            return
        if self.get_done_task_count() < self.get_task_count():
            self._update_display()
            return
        self._finished = True
        if self._bar is not None:
            self._bar.close()
            self._bar = None
        self._logger.debug("Progress aggregator finished.")
        for listener in self._listeners:
            listener()

    def _update_display(self) -> None:
        if self._bar is None:
            self._bar = self._bar_factory(
                total=0,
                desc=self.get_message(),
                disable=not self._show_progress,
                leave=False,
            )
        self._bar.total = self.get_task_count()
        self._bar.set_description(self.get_message(), refresh=True)


class LoggingNotifier:
    """Notification surface that writes user-facing messages to the log."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def show(self, message: str, severity: str) -> None:
        level = logging.WARNING if severity in ("warning", "error") else logging.INFO
        self._logger.log(level, message)
