"""Provider transports: JSONP callback exchange and plain JSON fetch."""

from __future__ import annotations

import asyncio
import functools
import itertools
import json
import logging
import re
from collections.abc import Callable, Mapping
from concurrent.futures import Executor
from typing import Any

from requests import Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from .errors import FetchError, ProviderError
from .models import ErrorCallback, ProviderResponse, SuccessCallback
from .validation import render_template

JSONP_BODY_RE = re.compile(
    r"^\s*(?:/\*\*/)?\s*"
    r"(?:typeof\s+[A-Za-z_$][\w$]*\s*===?\s*['\"]function['\"]\s*&&\s*)?"
    r"([A-Za-z_$][\w$]*)\s*\((.*)\)\s*;?\s*$",
    re.DOTALL,
)


def make_retry_session(user_agent: str) -> Session:
    """Create requests session with retry/backoff defaults."""
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    retry = Retry(
        total=3,
        backoff_factor=0.6,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset({"GET"}),
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class CallbackRegistry:
    """Named JSONP callbacks owned by one session."""

    def __init__(self, prefix: str = "embedkit_jsonp_") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)
        self._handlers: dict[str, Callable[[ProviderResponse], None]] = {}

    def allocate(self, handler: Callable[[ProviderResponse], None]) -> str:
        """Register ``handler`` under a fresh, never reused callback name."""
        name = f"{self._prefix}{next(self._counter)}"
        self._handlers[name] = handler
        return name

    def release(self, name: str) -> bool:
        """Forget a callback name. Returns False if it was already released."""
        return self._handlers.pop(name, None) is not None

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def dispatch(self, body: str, expected: str | None = None) -> bool:
        """Run the callback invoked by a JSONP ``body``.

        Returns False when the named callback is no longer registered, or is
        not ``expected`` when a name is given.
        """
        match = JSONP_BODY_RE.match(body or "")
        if match is None:
            raise ProviderError("Provider body is not a JSONP callback invocation.")
        name, payload = match.groups()
        if expected is not None and name != expected:
            return False
        handler = self._handlers.get(name)
        if handler is None:
            return False
        try:
            response = json.loads(payload)
        except ValueError as exc:
            raise ProviderError(f"Provider payload for {name} is not valid JSON.") from exc
        if not isinstance(response, dict):
            raise ProviderError(f"Provider payload for {name} is not an object.")
        handler(response)
        return True


class TransportHandle:
    """Cancel handle returned by a transport; cleanup runs at most once."""

    def __init__(self, cleanup: Callable[[], bool]) -> None:
        self._cleanup = cleanup

    def cancel(self) -> None:
        self._cleanup()


class _Exchange:
    """State of one in-flight provider exchange."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_success: SuccessCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        self._loop = loop
        self._on_success = on_success
        self._on_error = on_error
        self.release: Callable[[], object] | None = None
        self.future: asyncio.Future[str] | None = None
        self.active = True

    def clean_up(self) -> bool:
        if not self.active:
            return False
        self.active = False
        if self.release is not None:
            self.release()
        if self.future is not None and not self.future.done():
            self.future.cancel()
        return True

    def deliver(self, response: ProviderResponse) -> None:
        # Some providers answer before the caller holds its handle; never call back synchronously.
        def _finish() -> None:
            if self.clean_up():
                self._on_success(response)

        self._loop.call_soon(_finish)

    def fail(self) -> None:
        if self.clean_up() and self._on_error is not None:
            self._on_error()


class _ExecutorTransport:
    """Shared plumbing: blocking GET in an executor, completion on the loop."""

    def __init__(
        self,
        *,
        session: Session,
        loop: asyncio.AbstractEventLoop,
        timeout: float,
        logger: logging.Logger,
        executor: Executor | None = None,
    ) -> None:
        self._session = session
        self._loop = loop
        self._timeout = timeout
        self._logger = logger
        self._executor = executor

    def _fetch(self, url: str) -> str:
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            return str(response.text)
        except RequestException as exc:
            raise FetchError(f"Provider request failed for {url}: {exc}") from exc

    def _start(self, exchange: _Exchange, url: str, parse: Callable[[str], None]) -> TransportHandle:
        exchange.future = self._loop.run_in_executor(self._executor, self._fetch, url)

        def _loaded(future: asyncio.Future[str]) -> None:
            if future.cancelled() or not exchange.active:
                return
            exc = future.exception()
            if exc is None:
                try:
                    parse(future.result())
                    return
                except ProviderError as err:
                    exc = err
            self._logger.debug("Provider exchange failed for %s: %s", url, exc)
            exchange.fail()

        exchange.future.add_done_callback(_loaded)
        return TransportHandle(exchange.clean_up)


class JsonpTransport(_ExecutorTransport):
    """JSONP exchange: the provider body calls back a registered function name."""

    def __init__(self, *, registry: CallbackRegistry, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._registry = registry

    def send_request(
        self,
        url_template: str,
        params: Mapping[str, object] | None,
        on_success: SuccessCallback,
        on_error: ErrorCallback | None = None,
    ) -> TransportHandle:
        """Send one request; the template must use ``{callback}``."""
        url_params = dict(params or {})
        exchange = _Exchange(loop=self._loop, on_success=on_success, on_error=on_error)
        name = self._registry.allocate(exchange.deliver)
        exchange.release = functools.partial(self._registry.release, name)
        url_params["callback"] = name
        url = render_template(url_template, url_params)
        self._logger.debug("JSONP request %s -> %s", name, url)

        def _parse(body: str) -> None:
            if not self._registry.dispatch(body, expected=name):
                raise ProviderError(f"Provider did not call back {name}.")

        return self._start(exchange, url, _parse)


class JsonTransport(_ExecutorTransport):
    """Plain JSON exchange for providers that answer without a callback wrapper."""

    def send_request(
        self,
        url_template: str,
        params: Mapping[str, object] | None,
        on_success: SuccessCallback,
        on_error: ErrorCallback | None = None,
    ) -> TransportHandle:
        url = render_template(url_template, dict(params or {}))
        exchange = _Exchange(loop=self._loop, on_success=on_success, on_error=on_error)

        def _parse(body: str) -> None:
            try:
                response = json.loads(body)
            except ValueError as exc:
                raise ProviderError(f"Provider body for {url} is not valid JSON.") from exc
            if not isinstance(response, dict):
                raise ProviderError(f"Provider body for {url} is not an object.")
            exchange.deliver(response)

        return self._start(exchange, url, _parse)
