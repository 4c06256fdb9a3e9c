"""Centralised helpers for Playwright launch configuration."""

from __future__ import annotations

import os
import shlex
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from playwright.async_api import Browser, Playwright

from pricewatch.config import as_bool
from pricewatch.logging_config import get_logger

LOGGER = get_logger(__name__)

VIEWPORT = {"width": 1920, "height": 1080}


def headless_enabled() -> bool:
    """Return True if Playwright should run in headless mode."""

    return as_bool(os.getenv("PRICEWATCH_HEADLESS"), True)


def stealth_enabled() -> bool:
    """Return True when stealth evasion scripts should be applied."""

    return as_bool(os.getenv("PRICEWATCH_STEALTH"), True)


@lru_cache(maxsize=1)
def _stealth_instance():
    from playwright_stealth import Stealth

    lang_env = os.getenv("PRICEWATCH_LANGS") or "en-US,en"
    langs = tuple(entry.strip() for entry in lang_env.split(",") if entry.strip()) or ("en-US", "en")
    return Stealth(navigator_languages_override=langs[:2])


def apply_stealth(playwright: Playwright) -> None:
    """Hook the provided Playwright object with stealth evasions when enabled."""

    if not stealth_enabled():
        return
    try:
        _stealth_instance().hook_playwright_context(playwright)
    except Exception as exc:
        # Playwright internals move; a scrape without evasions is still useful.
        LOGGER.warning("Stealth hook unavailable: %s", exc)


def proxy_config(override: str | None = None) -> dict[str, str] | None:
    """Proxy settings from *override* or ``PRICEWATCH_PROXY``; bare hosts get http://."""

    raw = override or os.getenv("PRICEWATCH_PROXY")
    if not raw:
        return None
    parsed = urlparse(raw)
    if not parsed.scheme or not parsed.netloc:
        return {"server": f"http://{raw}"}
    return {"server": raw}


def launch_kwargs(proxy: str | None = None) -> dict[str, Any]:
    """Return kwargs passed to chromium.launch."""

    args = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--window-size=1920,1080",
    ]
    extra_args = os.getenv("PRICEWATCH_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(),
        "args": args,
    }

    channel = os.getenv("PRICEWATCH_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    proxy_settings = proxy_config(proxy)
    if proxy_settings:
        kwargs["proxy"] = proxy_settings

    return kwargs


def context_kwargs(user_agent: str | None = None) -> dict[str, Any]:
    """Return kwargs for browser.new_context; every scrape gets a fresh context."""

    kwargs: dict[str, Any] = {"viewport": dict(VIEWPORT)}
    if user_agent:
        kwargs["user_agent"] = user_agent
    if as_bool(os.getenv("PRICEWATCH_IGNORE_HTTPS_ERRORS"), False):
        kwargs["ignore_https_errors"] = True
    return kwargs


async def launch_browser(playwright: Playwright, *, proxy: str | None = None) -> Browser:
    """Launch Chromium according to env overrides."""

    return await playwright.chromium.launch(**launch_kwargs(proxy))
