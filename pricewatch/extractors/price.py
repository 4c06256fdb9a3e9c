"""Ordered, first-match-wins price extraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pricewatch.logging_config import get_logger

from .documents import Document
from .rules import ExtractionRule, content_rules, meta_rules

LOGGER = get_logger(__name__)

DEFAULT_RULES: tuple[ExtractionRule, ...] = meta_rules() + content_rules()


@dataclass(frozen=True)
class PriceMatch:
    price: float
    rule: str


async def find_price(
    document: Document,
    rules: Sequence[ExtractionRule] = DEFAULT_RULES,
) -> PriceMatch | None:
    """Return the price from the first rule that yields one, or ``None``.

    A missing price is an absence, not an error: every rule is tried and
    ``None`` comes back when none of them parse.
    """

    for rule in rules:
        price = await rule.apply(document)
        if price is not None:
            LOGGER.debug("Price %.2f matched by %s", price, rule.name)
            return PriceMatch(price=price, rule=rule.name)
    return None


async def extract_price(
    document: Document,
    rules: Sequence[ExtractionRule] = DEFAULT_RULES,
) -> float | None:
    match = await find_price(document, rules)
    return match.price if match else None
