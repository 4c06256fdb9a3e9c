"""Uniform async query interface over a live page or captured markup."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from bs4 import BeautifulSoup, Tag, UnicodeDammit
from playwright.async_api import ElementHandle, Page


class Element(Protocol):
    async def attribute(self, name: str) -> str | None: ...

    async def text(self) -> str | None: ...


class Document(Protocol):
    async def query(self, selector: str) -> Element | None: ...


class _PageElement:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    async def attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def text(self) -> str | None:
        return await self._handle.text_content()


class PageDocument:
    """Queries the rendered DOM of a Playwright page, including injected values."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def query(self, selector: str) -> _PageElement | None:
        handle = await self._page.query_selector(selector)
        if handle is None:
            return None
        return _PageElement(handle)


class _MarkupElement:
    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    async def attribute(self, name: str) -> str | None:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def text(self) -> str | None:
        return self._tag.get_text()


class MarkupDocument:
    """Queries static HTML, e.g. a markup artifact saved by an earlier scrape."""

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")

    async def query(self, selector: str) -> _MarkupElement | None:
        tag = self._soup.select_one(selector)
        if tag is None:
            return None
        return _MarkupElement(tag)


def read_markup(path: Path) -> str:
    """Decode a saved HTML file: declared charset first, then UTF-8, then cp1252.

    Undecodable bytes become U+FFFD.
    """

    raw = path.read_bytes()
    dammit = UnicodeDammit(raw, is_html=True, user_encodings=["utf-8", "windows-1252"])
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return raw.decode("utf-8", errors="replace")
