"""Protocols and lightweight model types."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from bs4 import Tag

    from .coordinator import Request
    from .surface import Surface

ProviderResponse = dict[str, Any]
SuccessCallback = Callable[[ProviderResponse], None]
ErrorCallback = Callable[[], None]


class Cancelable(Protocol):
    """Anything whose pending work can be abandoned."""

    def cancel(self) -> None:
        """Stop local callbacks from firing. Safe to call more than once."""


class Transport(Protocol):
    """Contract for one provider exchange."""

    def send_request(
        self,
        url_template: str,
        params: Mapping[str, object] | None,
        on_success: SuccessCallback,
        on_error: ErrorCallback | None = None,
    ) -> Cancelable:
        """Start an exchange and return its cancel handle."""


class RequestSender(Protocol):
    """Strategy that dispatches a request; returns False to let the next one try."""

    def send(self, request: Request) -> bool:
        """Dispatch ``request`` and settle it later via resolve/reject."""


class ResponseConverter(Protocol):
    """Strategy that turns a provider response into embeddable markup."""

    def convert(self, url: str, response: ProviderResponse) -> str | None:
        """Return markup, None to decline, or raise ContentRejected."""


class UrlValidator(Protocol):
    """Extra pre-flight URL check; returning False rejects the URL."""

    def __call__(self, url: str) -> bool:
        """Return False to reject ``url``."""


class Notifier(Protocol):
    """Contract for the user-facing notification surface."""

    def show(self, message: str, severity: str) -> None:
        """Display one message."""


class HeightProbe(Protocol):
    """Measures rendered heights of an isolated surface."""

    def content_height(self, container: Tag) -> int:
        """Return the scroll height of the installed content container."""

    def document_height(self, surface: Surface) -> int:
        """Return the scroll height of the surface body."""
