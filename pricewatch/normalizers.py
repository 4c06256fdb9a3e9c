"""Utility helpers for normalising scraped price text."""

from __future__ import annotations

import math
import re

_NON_PRICE_CHARS = re.compile(r"[^\d,.]")
_NUMERIC_RUN = re.compile(r"[\d,.]+")
_LEADING_DECIMAL = re.compile(r"\d+(?:\.\d+)?|\.\d+")


def _leading_decimal(text: str) -> float | None:
    match = _LEADING_DECIMAL.match(text)
    if not match:
        return None
    value = float(match.group(0))
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def parse_meta_price(value: str | None) -> float | None:
    """Parse a metadata ``content`` value such as ``"99,999.99 USD"``."""

    if not value:
        return None
    cleaned = _NON_PRICE_CHARS.sub("", value).replace(",", "")
    return _leading_decimal(cleaned)


def parse_text_price(text: str | None) -> float | None:
    """Parse the first numeric run of visible text such as ``"$1,299.99"``."""

    if not text:
        return None
    match = _NUMERIC_RUN.search(text)
    if not match:
        return None
    return _leading_decimal(match.group(0).replace(",", ""))


def format_price(value: float | None) -> str | None:
    if value is None:
        return None
    return f"{value:,.2f}"


__all__ = ["format_price", "parse_meta_price", "parse_text_price"]
