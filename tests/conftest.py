"""Shared pytest fixtures."""

from __future__ import annotations

import os
import tempfile

os.environ.setdefault("PRICEWATCH_LOG_DIR", tempfile.mkdtemp(prefix="pricewatch-logs-"))

from collections.abc import Generator
from datetime import datetime
from unittest.mock import patch

import pytest

from pricewatch.browser import ScrapeResult
from pricewatch.storage.db import get_engine, init_db_safe, make_session

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so retry loops and throttles run instantly."""
    with patch("time.sleep"):
        yield


@pytest.fixture()
def session_factory(tmp_path):
    engine = get_engine(str(tmp_path / "pricewatch.sqlite"))
    init_db_safe(engine)
    try:
        yield make_session(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    with session_factory() as session:
        yield session


class FakeBrowser:
    """Stands in for BrowserSessionManager.scrape."""

    def __init__(self, result: ScrapeResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, int | None]] = []

    async def scrape(self, target: str, *, task_id: int | None = None) -> ScrapeResult:
        self.calls.append((target, task_id))
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result

    async def terminate_all(self) -> None:
        return None


class FakeNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[int, float]] = []

    def send_price_alert(self, item, price: float) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append((item.id, price))
        return "fake"


def priced(price: float | None) -> ScrapeResult:
    return ScrapeResult(
        price=price,
        rule="meta:test" if price is not None else None,
        screenshot=b"\x89PNG",
        html="<html><body>captured</body></html>",
    )
