"""User-facing message table, keyed by error kind (optionally suffixed)."""

from .errors import FETCH_FAILED, GIVEN_SUFFIX, UNSUPPORTED_URL, WIDGET_INVALID

FETCHING_ONE = "fetching-one"
FETCHING_MANY = "fetching-many"

DEFAULT_MESSAGES: dict[str, str] = {
    "path-name": "media object",
    UNSUPPORTED_URL: "The URL {url} is not supported by Media Embed.",
    UNSUPPORTED_URL + GIVEN_SUFFIX: "The specified URL is not supported.",
    FETCH_FAILED: "Failed to fetch content for {url}.",
    FETCH_FAILED + GIVEN_SUFFIX: "Failed to fetch content for the given URL.",
    WIDGET_INVALID: "Content for {url} arrived after its embed was removed.",
    FETCHING_ONE: "Fetching oEmbed response...",
    FETCHING_MANY: "Fetching oEmbed responses, {current} of {max} done...",
}
