"""Document-scoped state shared by every embed definition and widget."""

from __future__ import annotations

import asyncio
import itertools
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import TYPE_CHECKING

from requests import Session

from .caches import FrameContentCache
from .config import EmbedConfig
from .messages import DEFAULT_MESSAGES
from .models import Notifier, Transport
from .progress import LoggingNotifier
from .surface import HostDocument
from .transport import CallbackRegistry, JsonpTransport, JsonTransport, make_retry_session

if TYPE_CHECKING:
    from .coordinator import EmbedWidget


class WidgetRepository:
    """Live widget instances by id."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._instances: dict[int, EmbedWidget] = {}

    def next_id(self) -> int:
        return next(self._ids)

    def add(self, widget: EmbedWidget) -> None:
        self._instances[widget.id] = widget

    def remove(self, widget: EmbedWidget) -> None:
        self._instances.pop(widget.id, None)

    def get(self, widget_id: int) -> EmbedWidget | None:
        return self._instances.get(widget_id)

    def values(self) -> list[EmbedWidget]:
        return list(self._instances.values())

    def __len__(self) -> int:
        return len(self._instances)


class EmbedSession:
    """Owns the loop-bound collaborators of one document.

    The frame content cache, callback registry and live surface registry
    outlive individual widgets and are shared by all definitions.
    """

    def __init__(
        self,
        config: EmbedConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger,
        http_session: Session | None = None,
        executor: Executor | None = None,
        transport: Transport | None = None,
        notifier: Notifier | None = None,
        host: HostDocument | None = None,
        messages: dict[str, str] | None = None,
    ) -> None:
        self.config = config
        self.loop = loop
        self.logger = logger
        self.callbacks = CallbackRegistry()
        self._owns_http = http_session is None
        self.http = http_session or make_retry_session(config.user_agent)
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=config.workers)
        self.transport = transport or self._build_transport()
        self.notifier = notifier or LoggingNotifier(logger)
        self.host = host or HostDocument(
            loop=loop,
            frame_height=config.frame_height,
            async_ready=config.async_surface_ready,
            logger=logger,
        )
        self.frame_cache = FrameContentCache(
            max_entries_per_url=config.max_captures_per_url, logger=logger
        )
        self.widgets = WidgetRepository()
        self.messages = {**DEFAULT_MESSAGES, **(messages or {})}

    def _build_transport(self) -> Transport:
        kwargs = {
            "session": self.http,
            "loop": self.loop,
            "timeout": self.config.request_timeout,
            "logger": self.logger,
            "executor": self.executor,
        }
        if self.config.transport == "json":
            return JsonTransport(**kwargs)
        return JsonpTransport(registry=self.callbacks, **kwargs)

    def close(self) -> None:
        """Destroy live widgets and release owned resources."""
        for widget in self.widgets.values():
            widget.destroy()
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_http:
            self.http.close()
