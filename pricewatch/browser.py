"""Scoped Playwright sessions with a hard deadline and guaranteed teardown."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Page, Playwright
from playwright.async_api import async_playwright

from pricewatch.errors import ScrapeTimeoutError, TransientBrowserError
from pricewatch.extractors import DEFAULT_RULES, ExtractionRule, PageDocument, find_price, read_markup
from pricewatch.logging_config import get_logger
from pricewatch.playwright_env import apply_stealth, context_kwargs, launch_browser

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ScrapeResult:
    price: float | None
    rule: str | None
    screenshot: bytes | None
    html: str | None


class BrowserSession:
    """Driver, browser, context and page owned by a single scrape attempt."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser | None,
        context: BrowserContext | None,
        page: Page | None,
        *,
        close_timeout: float = 5.0,
    ) -> None:
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.close_timeout = close_timeout
        self.closed = False

    async def _close_gracefully(self) -> None:
        if self.page is not None:
            await self.page.close()
        if self.context is not None:
            await self.context.close()
        if self.browser is not None:
            await self.browser.close()

    async def teardown(self) -> None:
        """Close the browser, escalating to stopping the driver.

        Never raises, except to re-deliver a cancellation after the driver
        has been stopped.
        """

        if self.closed:
            return
        self.closed = True

        interrupted: asyncio.CancelledError | None = None
        try:
            await asyncio.wait_for(self._close_gracefully(), timeout=self.close_timeout)
        except asyncio.CancelledError as exc:
            interrupted = exc
            LOGGER.warning("Graceful browser close cancelled; forcing driver shutdown")
        except Exception as exc:
            LOGGER.warning("Graceful browser close failed; forcing driver shutdown: %s", exc)

        # Stopping the driver kills any browser process still attached to it.
        try:
            await asyncio.shield(asyncio.wait_for(self.playwright.stop(), timeout=self.close_timeout))
        except Exception as exc:
            LOGGER.warning("Playwright driver shutdown failed: %s", exc)

        if interrupted is not None:
            raise interrupted


async def launch_session(
    *,
    proxy: str | None = None,
    user_agent: str | None = None,
    close_timeout: float = 5.0,
) -> BrowserSession:
    """Start a fresh driver, browser and isolated context with one page."""

    playwright = await async_playwright().start()
    session = BrowserSession(playwright, None, None, None, close_timeout=close_timeout)
    try:
        apply_stealth(playwright)
        session.browser = await launch_browser(playwright, proxy=proxy)
        session.context = await session.browser.new_context(**context_kwargs(user_agent))
        session.page = await session.context.new_page()
    except BaseException:
        await session.teardown()
        raise
    return session


def _local_path(target: str) -> Path | None:
    if urlparse(target).scheme in {"http", "https", "file", "about", "data"}:
        return None
    path = Path(target).expanduser()
    return path if path.is_file() else None


class BrowserSessionManager:
    """Runs scrapes one session at a time, each bounded by ``scrape_timeout``."""

    def __init__(
        self,
        *,
        scrape_timeout: float = 60.0,
        navigation_timeout: float = 30.0,
        close_timeout: float = 5.0,
        proxy: str | None = None,
        user_agent: str | None = None,
        rules: Sequence[ExtractionRule] = DEFAULT_RULES,
        launcher: Callable[[], Awaitable[BrowserSession]] | None = None,
    ) -> None:
        self.scrape_timeout = scrape_timeout
        self.navigation_timeout = navigation_timeout
        self.close_timeout = close_timeout
        self.rules = rules
        self._launcher = launcher or (
            lambda: launch_session(proxy=proxy, user_agent=user_agent, close_timeout=close_timeout)
        )
        self._active: set[BrowserSession] = set()

    @property
    def active_sessions(self) -> int:
        return len(self._active)

    async def _release(self, session: BrowserSession) -> None:
        # terminate_all() may already have claimed and torn it down.
        if session in self._active:
            self._active.discard(session)
            await session.teardown()

    async def scrape(self, target: str, *, task_id: int | None = None) -> ScrapeResult:
        """Navigate to *target* (URL or local HTML file) and capture price + artifacts.

        The deadline covers launch and capture; teardown runs outside it.
        Raises :class:`ScrapeTimeoutError` when the deadline expires and
        :class:`TransientBrowserError` for navigation or browser failures; the
        session is torn down before either propagates.
        """

        session: BrowserSession | None = None
        try:
            async with asyncio.timeout(self.scrape_timeout):
                session = await self._launcher()
                self._active.add(session)
                return await self._capture(session.page, target)
        except TimeoutError as exc:
            raise ScrapeTimeoutError(
                f"Scraping operation timed out after {self.scrape_timeout:g}s",
                url=target,
                task_id=task_id,
            ) from exc
        except PlaywrightError as exc:
            # Playwright appends a multi-line call log; keep the headline.
            headline = str(exc).strip().splitlines()[0] if str(exc).strip() else None
            raise TransientBrowserError(headline, url=target, task_id=task_id) from exc
        finally:
            if session is not None:
                await self._release(session)

    async def _capture(self, page: Page, target: str) -> ScrapeResult:
        navigation_ms = self.navigation_timeout * 1000
        local = _local_path(target)
        if local is not None:
            await page.set_content(read_markup(local), timeout=navigation_ms)
        else:
            await page.goto(target, timeout=navigation_ms)

        screenshot = await page.screenshot(full_page=True)
        html = await page.content()
        # Query the live DOM: some prices are injected after the initial markup.
        match = await find_price(PageDocument(page), self.rules)
        return ScrapeResult(
            price=match.price if match else None,
            rule=match.rule if match else None,
            screenshot=screenshot,
            html=html,
        )

    async def terminate_all(self) -> None:
        """Tear down every in-flight session; used on process shutdown."""

        sessions = list(self._active)
        self._active.clear()
        for session in sessions:
            await session.teardown()
        if sessions:
            LOGGER.info("Terminated %d in-flight browser session(s)", len(sessions))
