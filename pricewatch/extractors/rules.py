"""Extraction rules: a selector plus how to read and parse what it matches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from pricewatch import selectors
from pricewatch.normalizers import parse_meta_price, parse_text_price

from .documents import Document, Element

Reader = Callable[[Element], Awaitable[str | None]]
Parser = Callable[[str | None], float | None]


async def read_content(element: Element) -> str | None:
    return await element.attribute("content")


async def read_text(element: Element) -> str | None:
    return await element.text()


@dataclass(frozen=True)
class ExtractionRule:
    """One ordered heuristic for locating a price."""

    name: str
    selector: str
    read: Reader
    parse: Parser

    async def apply(self, document: Document) -> float | None:
        element = await document.query(self.selector)
        if element is None:
            return None
        return self.parse(await self.read(element))


def meta_rules(selector_list: Iterable[str] = selectors.META_PRICE) -> tuple[ExtractionRule, ...]:
    return tuple(
        ExtractionRule(name=f"meta:{selector}", selector=selector, read=read_content, parse=parse_meta_price)
        for selector in selector_list
    )


def content_rules(selector_list: Iterable[str] = selectors.CONTENT_PRICE) -> tuple[ExtractionRule, ...]:
    return tuple(
        ExtractionRule(name=f"content:{selector}", selector=selector, read=read_text, parse=parse_text_price)
        for selector in selector_list
    )
