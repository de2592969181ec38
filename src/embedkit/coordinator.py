"""Embed definitions and widgets: loading, caching and installing provider content."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, Tag

from . import surface as surfaces
from .caches import ResponseCache
from .converters import CardPreviewConverter, OEmbedConverter, convert_response
from .errors import (
    FETCH_FAILED,
    WIDGET_INVALID,
    ContentRejected,
    EmbedLoadError,
)
from .messages import FETCHING_MANY, FETCHING_ONE
from .models import (
    Cancelable,
    HeightProbe,
    ProviderResponse,
    RequestSender,
    ResponseConverter,
    Transport,
    UrlValidator,
)
from .progress import NotificationAggregator, Task
from .validation import URL_PATTERN, encode_uri_component, render_template

if TYPE_CHECKING:
    from .session import EmbedSession

PENDING = "pending"
RESOLVED = "resolved"
REJECTED = "rejected"
CANCELED = "canceled"


class Request:
    """One attempt to resolve a resource URL.

    The first of resolve, reject or cancel settles the request; later calls
    are ignored.
    """

    def __init__(
        self,
        url: str,
        *,
        callback: Callable[[ProviderResponse], None],
        error_callback: Callable[[str], None],
        no_notifications: bool = False,
    ) -> None:
        self.url = url
        self.no_notifications = no_notifications
        self.task: Task | None = None
        self.response: ProviderResponse | None = None
        self.content: str | None = None
        self.state = PENDING
        self._callback = callback
        self._error_callback = error_callback
        self._handle: Cancelable | None = None
        self._cancel_listeners: list[Callable[[Request], None]] = []

    def attach(self, handle: Cancelable) -> None:
        """Bind the transport handle that ``cancel()`` should stop."""
        self._handle = handle

    def on_cancel(self, listener: Callable[[Request], None]) -> None:
        self._cancel_listeners.append(listener)

    def resolve(self, response: ProviderResponse) -> None:
        if self.state != PENDING:
            return
        self.state = RESOLVED
        self._callback(response)

    def reject(self, kind: str = FETCH_FAILED) -> None:
        if self.state != PENDING:
            return
        self.state = REJECTED
        self._error_callback(kind)

    def cancel(self) -> None:
        if self.state != PENDING:
            return
        self.state = CANCELED
        if self._handle is not None:
            self._handle.cancel()
        if self.task is not None:
            self.task.cancel()
        for listener in self._cancel_listeners:
            listener(self)


class ProviderSender:
    """Default sender: asks the provider endpoint through a transport."""

    def __init__(self, transport: Transport, provider_url: str) -> None:
        self._transport = transport
        self._provider_url = provider_url

    def send(self, request: Request) -> bool:
        handle = self._transport.send_request(
            self._provider_url,
            {"url": encode_uri_component(request.url)},
            request.resolve,
            lambda: request.reject(FETCH_FAILED),
        )
        request.attach(handle)
        return True


class EmbedDefinition:
    """Settings and shared state for every widget of one embed type.

    The response cache and the progress aggregator are shared by all widgets
    created from the same definition.
    """

    url_pattern = URL_PATTERN

    def __init__(
        self,
        session: EmbedSession,
        *,
        provider_url: str | None = None,
        senders: Sequence[RequestSender] = (),
        converters: Sequence[ResponseConverter] = (),
        url_validators: Sequence[UrlValidator] = (),
        height_probe: HeightProbe | None = None,
    ) -> None:
        self.session = session
        self.provider_url = provider_url or session.config.provider_url
        self.cache = ResponseCache()
        self.height_probe = height_probe or surfaces.AttributeHeightProbe()
        self._senders: list[RequestSender] = [
            *senders,
            ProviderSender(session.transport, self.provider_url),
        ]
        defaults: list[ResponseConverter] = []
        if session.config.card_previews:
            defaults.append(CardPreviewConverter())
        defaults.append(OEmbedConverter())
        self._converters: list[ResponseConverter] = [*converters, *defaults]
        self._url_validators = list(url_validators)
        self._aggregator: NotificationAggregator | None = None

    @property
    def aggregator(self) -> NotificationAggregator | None:
        return self._aggregator

    def add_sender(self, sender: RequestSender) -> None:
        """Try ``sender`` before every sender registered so far."""
        self._senders.insert(0, sender)

    def add_converter(self, converter: ResponseConverter) -> None:
        """Try ``converter`` before every converter registered so far."""
        self._converters.insert(0, converter)

    def add_url_validator(self, validator: UrlValidator) -> None:
        self._url_validators.append(validator)

    def create_widget(self, url: str | None = None) -> EmbedWidget:
        """Register a new widget and run its ready step."""
        widget = EmbedWidget(self, self.session.widgets.next_id(), url=url)
        self.session.widgets.add(widget)
        widget.ready()
        return widget

    def is_url_valid(self, url: str) -> bool:
        """Quick syntactic check; only the provider knows which URLs it can embed."""
        if not self.url_pattern.match(url or ""):
            return False
        return all(validator(url) is not False for validator in self._url_validators)

    def get_error_message(self, kind: str, url: str | None = None, suffix: str = "") -> str:
        """Message for an error kind (plus suffix), or ``kind`` used as a custom template."""
        message = self.session.messages.get(kind + (suffix or "")) or kind
        return render_template(message, {"url": url or ""})

    def response_to_content(self, url: str, response: ProviderResponse) -> str:
        return convert_response(self._converters, url, response)

    def send_request(self, request: Request) -> None:
        for sender in self._senders:
            if sender.send(request):
                return

    def create_task(self) -> Task:
        if self._aggregator is None or self._aggregator.is_finished():
            messages = self.session.messages
            self._aggregator = NotificationAggregator(
                messages[FETCHING_MANY],
                messages[FETCHING_ONE],
                show_progress=self.session.config.show_progress,
                logger=self.session.logger,
            )
        return self._aggregator.create_task()


class EmbedWidget:
    """One embedded resource in the document, with its isolated surface."""

    def __init__(self, definition: EmbedDefinition, widget_id: int, *, url: str | None = None) -> None:
        self.definition = definition
        self.session = definition.session
        self.id = widget_id
        self.data: dict[str, object] = {"url": url}
        self.element: Tag = self.session.host.create_element(
            "div", {"class": "embedkit-widget", "data-widget-id": str(widget_id)}
        )
        self.content = ""

    @property
    def url(self) -> str | None:
        value = self.data.get("url")
        return str(value) if value else None

    @property
    def surface(self) -> surfaces.Surface | None:
        return self.session.host.surface_for(self.element)

    def is_alive(self) -> bool:
        return self.session.widgets.get(self.id) is self

    def ready(self) -> None:
        """Bring back content for a widget created with a URL (undo, paste, reload)."""
        url = self.url
        if not url:
            return
        self._when_surface_ready(lambda surface: self._restore_or_load(surface, url))

    def _restore_or_load(self, surface: surfaces.Surface, url: str) -> None:
        if surface.has_source():
            return
        captured = self.session.frame_cache.pop_detached(url)
        if captured is not None:
            surfaces.restore(surface, captured)
            self._set_content(url, self._restored_content(surface, url))
            self.element["data-restore-html"] = "true"
            self.session.logger.debug("Restored captured content for %s in widget %s.", url, self.id)
            self.add_resize_listener()
            return

        response = self.definition.cache.get(url)
        if response is not None:
            try:
                content = self.definition.response_to_content(url, response)
            except ContentRejected:
                self.load_content(url, no_notifications=True)
                return
            self._set_content(url, content)
            self.add_content(content)
            return

        self.load_content(url, no_notifications=True)

    def _restored_content(self, surface: surfaces.Surface, url: str) -> str:
        """Markup for a restored surface: the cached response when it still converts."""
        response = self.definition.cache.get(url)
        if response is not None:
            try:
                return self.definition.response_to_content(url, response)
            except ContentRejected:
                self.session.logger.debug("Cached response for %s no longer converts; keeping restored markup.", url)
        body = surface.body
        container = body.find("div") if body is not None else None
        return container.decode_contents() if container is not None else ""

    def destroy(self, offline: bool = False) -> None:
        """Unregister; keep rendered content around for a later widget with the same URL.

        With ``offline`` the element stays in the document (it is detached later
        by whoever owns it), so its capture is not reusable until then.
        """
        if not self.is_alive():
            return
        self.session.widgets.remove(self)
        current = self.surface
        url = self.url
        if url and current is not None and current.has_content():
            self.session.frame_cache.push(url, surfaces.capture(current))
        if not offline:
            self.session.host.remove_element(self.element)

    def load_content(
        self,
        url: str,
        *,
        callback: Callable[[], None] | None = None,
        error_callback: Callable[[str], None] | None = None,
        no_notifications: bool = False,
    ) -> Request | None:
        """Resolve ``url`` through the provider and embed the result.

        Always asynchronous, even on a cache hit. Returns the pending request,
        or None when the response came from the cache.
        """
        definition = self.definition
        logger = self.session.logger

        def finish_loading(response: ProviderResponse) -> None:
            request.response = response
            if not self.is_alive():
                logger.warning(
                    "%s: %s (widget %s)",
                    WIDGET_INVALID,
                    definition.get_error_message(WIDGET_INVALID, url),
                    self.id,
                )
                if request.task is not None:
                    request.task.done()
                return
            try:
                content = self._handle_response(request)
            except ContentRejected as exc:
                fail(exc.kind)
                return
            definition.cache.set(url, response)
            if callback is not None:
                callback()
            self.add_content(content)

        def fail(kind: str) -> None:
            self._handle_error(request, kind)
            if error_callback is not None:
                error_callback(kind)

        request = Request(
            url,
            callback=finish_loading,
            error_callback=fail,
            no_notifications=no_notifications,
        )
        request.on_cancel(lambda canceled: logger.debug("Request for %s canceled.", canceled.url))

        cached = definition.cache.get(url)
        if cached is not None:
            self.session.loop.call_soon(request.resolve, cached)
            return None

        if not no_notifications:
            request.task = definition.create_task()

        definition.send_request(request)
        return request

    async def fetch_content(self, url: str, *, no_notifications: bool = True) -> str:
        """Awaitable form of ``load_content``; returns the embedded markup."""
        future: asyncio.Future[str] = self.session.loop.create_future()

        def _succeeded() -> None:
            if not future.done():
                future.set_result(self.content)

        def _failed(kind: str) -> None:
            if not future.done():
                message = self.definition.get_error_message(kind, url)
                future.set_exception(EmbedLoadError(kind, message))

        request = self.load_content(
            url,
            callback=_succeeded,
            error_callback=_failed,
            no_notifications=no_notifications,
        )
        try:
            return await future
        except asyncio.CancelledError:
            if request is not None:
                request.cancel()
            raise

    def _handle_response(self, request: Request) -> str:
        """Convert the response and record it as this widget's content.

        Raises ContentRejected when no converter can embed the response.
        """
        content = self.definition.response_to_content(request.url, request.response or {})
        if request.task is not None:
            request.task.done()
        request.content = content
        self._set_content(request.url, content)
        return content

    def _handle_error(self, request: Request, kind: str) -> None:
        self.session.logger.debug("Embedding %s failed: %s", request.url, kind)
        if request.task is None:
            return
        request.task.cancel()
        if not request.no_notifications:
            self.session.notifier.show(self.definition.get_error_message(kind, request.url), "warning")

    def _set_content(self, url: str, content: str) -> None:
        self.data["url"] = url
        self.content = content

    def _when_surface_ready(self, action: Callable[[surfaces.Surface], None]) -> None:
        def _on_ready(future: asyncio.Future[surfaces.Surface]) -> None:
            if future.cancelled() or not self.is_alive():
                return
            action(future.result())

        self.session.host.append_surface(self.element).add_done_callback(_on_ready)

    def add_content(self, content: str) -> None:
        """Install ``content`` into this widget's surface once it is ready."""

        def _install(surface: surfaces.Surface) -> None:
            surfaces.install_content(surface, content)
            self.element["data-restore-html"] = "true"
            self.add_resize_listener()

        self._when_surface_ready(_install)

    def add_resize_listener(self) -> None:
        current = self.surface
        if current is None:
            return
        surfaces.track_height(
            current,
            self.definition.height_probe,
            self.session.config.resize_interval,
            on_resize=lambda height: self.session.logger.debug(
                "Widget %s resized to %spx.", self.id, height
            ),
        )

    def downcast(self) -> str:
        """Serialized form of the widget for saving the document."""
        soup = BeautifulSoup("", "html.parser")
        wrapper = soup.new_tag("div", attrs={"data-oembed-url": self.url or ""})
        fragment = BeautifulSoup(self.content, "html.parser")
        for node in list(fragment.contents):
            wrapper.append(node.extract())
        return str(wrapper)
