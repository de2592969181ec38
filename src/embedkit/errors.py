"""Custom exceptions and error kinds for the embed domain."""

FETCH_FAILED = "fetch-failed"
UNSUPPORTED_URL = "unsupported-url"
WIDGET_INVALID = "widget-invalid"

GIVEN_SUFFIX = "-given"


class EmbedError(Exception):
    """Base exception for this project."""


class ConfigError(EmbedError):
    """Raised when runtime configuration is invalid."""


class FetchError(EmbedError):
    """Raised when a provider exchange fails at the transport level."""


class ProviderError(EmbedError):
    """Raised when a provider answers with a body that cannot be understood."""


class ContentRejected(EmbedError):
    """Raised by a response converter that refuses a provider response.

    ``kind`` is an error kind or a custom message template (``{url}`` allowed).
    """

    def __init__(self, kind: str = UNSUPPORTED_URL) -> None:
        super().__init__(kind)
        self.kind = kind


class EmbedLoadError(EmbedError):
    """Raised by the awaitable loading API when content could not be embedded."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
