import logging
from typing import Any

import pytest

from embedkit.progress import LoggingNotifier, NotificationAggregator

MANY = "Fetching oEmbed responses, {current} of {max} done..."
ONE = "Fetching oEmbed response..."


class FakeBar:
    instances: list["FakeBar"] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.total = kwargs.get("total")
        self.updates = 0
        self.descriptions: list[str] = []
        self.closed = False
        FakeBar.instances.append(self)

    def update(self, amount: int) -> None:
        self.updates += amount

    def set_description(self, desc: str, refresh: bool = True) -> None:
        self.descriptions.append(desc)

    def close(self) -> None:
        self.closed = True


def _aggregator() -> NotificationAggregator:
    FakeBar.instances = []
    return NotificationAggregator(MANY, ONE, bar_factory=FakeBar)


def test_aggregator_finishes_once_when_every_task_settles() -> None:
    aggregator = _aggregator()
    finished: list[bool] = []
    aggregator.on_finished(lambda: finished.append(True))
    tasks = [aggregator.create_task() for _ in range(3)]

    tasks[0].done()
    tasks[1].cancel()
    assert finished == []
    tasks[2].done()
    tasks[2].done()
    tasks[1].cancel()

    assert finished == [True]
    assert aggregator.is_finished() is True
    assert len(FakeBar.instances) == 1
    assert FakeBar.instances[0].closed is True


def test_aggregator_messages_follow_task_counts() -> None:
    aggregator = _aggregator()
    first = aggregator.create_task()
    assert aggregator.get_message() == ONE

    aggregator.create_task()
    aggregator.create_task()
    first.done()

    assert aggregator.get_message() == "Fetching oEmbed responses, 1 of 3 done..."
    bar = FakeBar.instances[0]
    assert bar.total == 3
    assert bar.updates == 1
    assert bar.descriptions[-1] == "Fetching oEmbed responses, 1 of 3 done..."


def test_canceling_the_only_task_finishes_the_aggregator() -> None:
    aggregator = _aggregator()
    task = aggregator.create_task()
    task.cancel()

    assert task.is_canceled() is True
    assert aggregator.get_task_count() == 0
    assert aggregator.is_finished() is True
    with pytest.raises(RuntimeError):
        aggregator.create_task()


def test_disabled_tqdm_bar_is_safe_to_drive() -> None:
    aggregator = NotificationAggregator(MANY, ONE, show_progress=False)
    tasks = [aggregator.create_task() for _ in range(2)]
    for task in tasks:
        task.done()
    assert aggregator.is_finished() is True


def test_logging_notifier_uses_warning_level(caplog: pytest.LogCaptureFixture) -> None:
    notifier = LoggingNotifier(logging.getLogger("test.notify"))
    with caplog.at_level(logging.INFO, logger="test.notify"):
        notifier.show("Failed to fetch content for https://x.", "warning")
        notifier.show("Done.", "info")
    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.WARNING, logging.INFO]
