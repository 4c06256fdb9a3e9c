"""Scrape a single URL or local HTML file and report the price found.

Usage: ``python -m pricewatch.scrape_one <url-or-path> [--offline]``
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from dotenv import load_dotenv

from pricewatch.browser import BrowserSessionManager
from pricewatch.config import load_settings
from pricewatch.errors import TransientBrowserError
from pricewatch.extractors import MarkupDocument, find_price, read_markup
from pricewatch.logging_config import get_logger
from pricewatch.normalizers import format_price
from pricewatch.storage.artifacts import ArtifactStore

LOGGER = get_logger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a single price scrape.")
    parser.add_argument("target", help="Product URL or path to a saved HTML file.")
    parser.add_argument(
        "--results-dir",
        type=Path,
        default=None,
        help="Where to write the screenshot and markup (default: configured results dir).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Parse a local HTML file without a browser (no screenshot, no scripts).",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def _is_url(target: str) -> bool:
    parsed = urlparse(target)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _print_report(price: float | None, screenshot_path: str | None, html_path: str | None) -> None:
    print("\nScraping Results:")
    print("-----------------")
    print(f"Price found: {format_price(price) if price is not None else 'No price found'}")
    if screenshot_path:
        print(f"Screenshot saved to: {screenshot_path}")
    if html_path:
        print(f"Processed HTML saved to: {html_path}")


async def _offline(path: Path) -> float | None:
    match = await find_price(MarkupDocument(read_markup(path)))
    return match.price if match else None


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    settings = load_settings()

    target = args.target
    if not _is_url(target) and not Path(target).expanduser().is_file():
        LOGGER.error("File not found: %s", target)
        return 1

    if args.offline:
        if _is_url(target):
            LOGGER.error("--offline needs a local HTML file, got %s", target)
            return 1
        price = asyncio.run(_offline(Path(target).expanduser()))
        _print_report(price, None, None)
        return 0 if price is not None else 1

    manager = BrowserSessionManager(
        scrape_timeout=settings.scrape_timeout,
        navigation_timeout=settings.navigation_timeout,
        close_timeout=settings.close_timeout,
        proxy=settings.proxy,
        user_agent=settings.user_agent,
    )
    LOGGER.info("Processing %s", target)
    try:
        result = asyncio.run(manager.scrape(target))
    except TransientBrowserError as exc:
        LOGGER.error("Error during scraping: %s", exc)
        return 1

    store = ArtifactStore(args.results_dir or settings.results_dir)
    paths = store.save("single_scrape", result.screenshot, result.html)
    _print_report(result.price, paths.screenshot_path, paths.html_path)
    return 0 if result.price is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
