"""CLI entrypoint for embedkit."""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from tqdm.contrib.logging import logging_redirect_tqdm

from .config import (
    DEFAULT_PROVIDER_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_WORKERS,
    EmbedConfig,
)
from .errors import ConfigError
from .logging_utils import configure_logging, get_logger
from .pipeline import run_pipeline
from .validation import TRANSPORTS, load_lines_from_file


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="embedkit - resolve resource URLs into embeddable HTML through an oEmbed provider."
    )
    parser.add_argument("urls", nargs="*", help="Resource URLs to resolve.")
    parser.add_argument("--urls-file", help="Path to URL file (one URL per line).")
    parser.add_argument(
        "--provider-url",
        default=DEFAULT_PROVIDER_URL,
        help="Provider endpoint template with {url} (and {callback} for JSONP).",
    )
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="jsonp",
        help="How the provider answers: JSONP callback or plain JSON.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="HTTP timeout per provider request in seconds.",
    )
    parser.add_argument(
        "--workers", type=int, default=DEFAULT_WORKERS, help="Number of HTTP worker threads."
    )
    parser.add_argument(
        "--card-previews",
        action="store_true",
        help="Render static preview cards for Iframely script-based embeds.",
    )
    parser.add_argument("--output", default="embeds_output.csv", help="Output CSV path.")
    parser.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse and pre-validate CLI input."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.urls or args.urls_file):
        parser.error("Provide resource URLs or --urls-file.")
    return args


def _materialize_urls(args: argparse.Namespace) -> tuple[str, ...]:
    urls = list(args.urls or [])
    if args.urls_file:
        urls.extend(load_lines_from_file(args.urls_file))
    return tuple(urls)


def namespace_to_config(args: argparse.Namespace) -> EmbedConfig:
    """Convert CLI args to validated EmbedConfig."""
    return EmbedConfig(
        provider_url=args.provider_url,
        transport=args.transport,
        request_timeout=args.timeout,
        workers=args.workers,
        card_previews=args.card_previews,
        show_progress=not args.no_progress,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    with logging_redirect_tqdm():
        output = run_pipeline(config, _materialize_urls(args), output=args.output, logger=logger)
    logger.info("Wrote results to %s", output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
