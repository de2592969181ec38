import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fakes import FakeResponse, FakeSession, InlineExecutor, RecordingNotifier

from embedkit.config import EmbedConfig
from embedkit.session import EmbedSession


@pytest.fixture
def loop() -> Iterator[asyncio.AbstractEventLoop]:
    event_loop = asyncio.new_event_loop()
    yield event_loop
    event_loop.close()


@pytest.fixture
def drain(loop: asyncio.AbstractEventLoop) -> Callable[..., None]:
    """Run callbacks that are ready now or become ready shortly; timers are not awaited."""

    def _drain(turns: int = 20) -> None:
        for _ in range(turns):
            loop.run_until_complete(asyncio.sleep(0))

    return _drain


@pytest.fixture
def make_session(loop: asyncio.AbstractEventLoop) -> Iterator[Callable[..., EmbedSession]]:
    sessions: list[EmbedSession] = []

    def _make(handler: Callable[[str], FakeResponse], **config_kwargs: Any) -> EmbedSession:
        config_kwargs.setdefault("show_progress", False)
        session = EmbedSession(
            EmbedConfig(**config_kwargs),
            loop=loop,
            logger=logging.getLogger("test"),
            http_session=FakeSession(handler),  # type: ignore[arg-type]
            executor=InlineExecutor(),
            notifier=RecordingNotifier(),
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
