"""Runtime configuration model."""

from __future__ import annotations

from dataclasses import dataclass

from .validation import validate_runtime_constraints

DEFAULT_PROVIDER_URL = "https://noembed.com/embed?url={url}&callback={callback}"
DEFAULT_USER_AGENT = "embedkit/1.0 (+https://pypi.org/project/embedkit/)"
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_WORKERS = 4
DEFAULT_RESIZE_INTERVAL = 0.2
DEFAULT_FRAME_HEIGHT = 300
DEFAULT_MAX_CAPTURES_PER_URL = 8


@dataclass(frozen=True)
class EmbedConfig:
    """Validated configuration shared by a session and its definitions."""

    provider_url: str = DEFAULT_PROVIDER_URL
    transport: str = "jsonp"
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    workers: int = DEFAULT_WORKERS
    resize_interval: float = DEFAULT_RESIZE_INTERVAL
    frame_height: int = DEFAULT_FRAME_HEIGHT
    max_captures_per_url: int = DEFAULT_MAX_CAPTURES_PER_URL
    async_surface_ready: bool = False
    card_previews: bool = False
    show_progress: bool = True

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            provider_url=self.provider_url,
            transport=self.transport,
            request_timeout=self.request_timeout,
            workers=self.workers,
            resize_interval=self.resize_interval,
            frame_height=self.frame_height,
            max_captures_per_url=self.max_captures_per_url,
        )
