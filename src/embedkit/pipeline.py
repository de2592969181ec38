"""Batch resolution: many resource URLs, one loop, one CSV."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from .config import EmbedConfig
from .coordinator import EmbedDefinition
from .errors import UNSUPPORTED_URL, EmbedLoadError
from .io_csv import write_rows
from .session import EmbedSession


def _row(url: str, *, status: str, content: str = "", error: str = "", response: dict | None = None) -> dict[str, str]:
    response = response or {}
    return {
        "url": url,
        "status": status,
        "type": str(response.get("type") or ""),
        "provider_name": str(response.get("provider_name") or ""),
        "title": str(response.get("title") or ""),
        "content": content,
        "error": error,
    }


async def resolve_records(
    urls: Sequence[str],
    *,
    definition: EmbedDefinition,
    logger: logging.Logger,
) -> list[dict[str, str]]:
    """Resolve every URL concurrently and return one row per input URL."""
    rows: list[dict[str, str] | None] = [None] * len(urls)
    pending: list[tuple[int, str]] = []
    for index, url in enumerate(urls):
        if not definition.is_url_valid(url):
            logger.info("Skipping unsupported URL: %s", url)
            rows[index] = _row(
                url,
                status="invalid",
                error=definition.get_error_message(UNSUPPORTED_URL, url),
            )
            continue
        pending.append((index, url))

    logger.info("Resolving %d URLs.", len(pending))
    results = await asyncio.gather(
        *(
            definition.create_widget().fetch_content(url, no_notifications=False)
            for _, url in pending
        ),
        return_exceptions=True,
    )
    for (index, url), result in zip(pending, results):
        if isinstance(result, EmbedLoadError):
            rows[index] = _row(url, status="error", error=result.message)
        elif isinstance(result, BaseException):
            raise result
        else:
            rows[index] = _row(
                url, status="ok", content=result, response=definition.cache.get(url)
            )
    return [row for row in rows if row is not None]


def run_pipeline(
    config: EmbedConfig, urls: Sequence[str], *, output: str, logger: logging.Logger
) -> str:
    """Build a session, resolve ``urls`` and write the CSV output."""
    loop = asyncio.new_event_loop()
    session = EmbedSession(config, loop=loop, logger=logger)
    try:
        definition = EmbedDefinition(session)
        rows = loop.run_until_complete(
            resolve_records(urls, definition=definition, logger=logger)
        )
    finally:
        session.close()
        loop.close()
    write_rows(output, rows)
    return output
