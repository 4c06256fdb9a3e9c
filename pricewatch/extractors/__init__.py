"""Price extraction rules and the documents they run against."""

from .documents import MarkupDocument, PageDocument, read_markup
from .price import DEFAULT_RULES, PriceMatch, extract_price, find_price
from .rules import ExtractionRule

__all__ = [
    "DEFAULT_RULES",
    "ExtractionRule",
    "MarkupDocument",
    "PageDocument",
    "PriceMatch",
    "extract_price",
    "find_price",
    "read_markup",
]
