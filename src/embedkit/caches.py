"""Response cache and captured frame content cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import DEFAULT_MAX_CAPTURES_PER_URL
from .models import ProviderResponse

if TYPE_CHECKING:
    from bs4 import Tag

    from .surface import HostDocument


class ResponseCache:
    """Provider responses by resource URL, shared by every widget of one definition.

    Entries are never evicted; a cached response is treated as immutable.
    """

    def __init__(self) -> None:
        self._responses: dict[str, ProviderResponse] = {}

    def get(self, url: str) -> ProviderResponse | None:
        return self._responses.get(url)

    def set(self, url: str, response: ProviderResponse) -> None:
        self._responses[url] = response

    def __contains__(self, url: object) -> bool:
        return url in self._responses

    def __len__(self) -> int:
        return len(self._responses)


@dataclass(frozen=True, eq=False)
class CapturedSubtree:
    """Content of a torn-down surface, kept for reuse by a later surface."""

    surface_id: int
    root: Tag
    host: HostDocument

    def is_origin_attached(self) -> bool:
        """True while the originating surface is still live in the host document."""
        return self.host.is_attached(self.surface_id)


class FrameContentCache:
    """Captured surface contents by resource URL, scoped to one session."""

    def __init__(
        self,
        *,
        max_entries_per_url: int = DEFAULT_MAX_CAPTURES_PER_URL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._entries: dict[str, list[CapturedSubtree]] = {}
        self._max_entries_per_url = max_entries_per_url
        self._logger = logger or logging.getLogger("embedkit")

    def push(self, url: str, captured: CapturedSubtree) -> None:
        entries = self._entries.setdefault(url, [])
        entries.append(captured)
        while len(entries) > self._max_entries_per_url:
            dropped = entries.pop(0)
            self._logger.debug(
                "Dropped captured content of surface %s for %s (cap %d).",
                dropped.surface_id,
                url,
                self._max_entries_per_url,
            )

    def pop_detached(self, url: str) -> CapturedSubtree | None:
        """Remove and return the first capture whose surface is proven detached."""
        entries = self._entries.get(url)
        if not entries:
            return None
        for index, captured in enumerate(entries):
            if not captured.is_origin_attached():
                del entries[index]
                if not entries:
                    del self._entries[url]
                return captured
        return None

    def count(self, url: str) -> int:
        return len(self._entries.get(url, ()))

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
