"""URL checks, template substitution and runtime guardrails."""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import quote

from .errors import ConfigError

URL_PATTERN = re.compile(r"^((https?:)?//|www\.)", re.IGNORECASE)
PLACEHOLDER_RE = re.compile(r"{([^{}]+)}")
TRANSPORTS = ("jsonp", "json")


def is_supported_url(url: str) -> bool:
    """Accept protocol-relative, HTTP(S) and bare ``www.`` URLs."""
    return bool(URL_PATTERN.match(url or ""))


def encode_uri_component(value: str) -> str:
    """Percent-encode a value the way browsers encode a URI component."""
    return quote(value, safe="!~*'()")


def render_template(template: str, params: Mapping[str, object]) -> str:
    """Substitute ``{name}`` placeholders; unknown placeholders are kept verbatim."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in params or params[key] is None:
            return match.group(0)
        return str(params[key])

    return PLACEHOLDER_RE.sub(_replace, template)


def load_lines_from_file(path: str) -> list[str]:
    """Load non-empty lines from a UTF-8 text file."""
    content = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in content.splitlines() if line.strip()]


def validate_runtime_constraints(
    *,
    provider_url: str,
    transport: str,
    request_timeout: float,
    workers: int,
    resize_interval: float,
    frame_height: int,
    max_captures_per_url: int,
) -> None:
    """Validate CLI/runtime configuration and raise ConfigError on invalid values."""
    if transport not in TRANSPORTS:
        raise ConfigError(f"--transport must be one of: {', '.join(TRANSPORTS)}.")
    if "{url}" not in provider_url:
        raise ConfigError("--provider-url must contain a {url} placeholder.")
    if transport == "jsonp" and "{callback}" not in provider_url:
        raise ConfigError("--provider-url must contain a {callback} placeholder for JSONP.")
    if request_timeout <= 0:
        raise ConfigError("--timeout must be > 0.")
    if workers < 1:
        raise ConfigError("--workers must be >= 1.")
    if resize_interval <= 0:
        raise ConfigError("resize_interval must be > 0.")
    if frame_height < 1:
        raise ConfigError("frame_height must be >= 1.")
    if max_captures_per_url < 1:
        raise ConfigError("max_captures_per_url must be >= 1.")
