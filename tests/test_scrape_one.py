from __future__ import annotations

from pathlib import Path

import pytest
from conftest import priced

from pricewatch import scrape_one
from pricewatch.errors import ScrapeTimeoutError

PRODUCT_HTML = """
<html><head><meta itemprop="price" content="19.99"></head>
<body><span class="price">$24.00</span></body></html>
"""


@pytest.fixture()
def product_page(tmp_path) -> Path:
    path = tmp_path / "product.html"
    path.write_text(PRODUCT_HTML, encoding="utf-8")
    return path


class StubManager:
    result = priced(12.5)
    error: Exception | None = None
    targets: list[str] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs

    async def scrape(self, target: str, *, task_id=None):
        StubManager.targets.append(target)
        if StubManager.error is not None:
            raise StubManager.error
        return StubManager.result


@pytest.fixture()
def stub_manager(monkeypatch):
    StubManager.result = priced(12.5)
    StubManager.error = None
    StubManager.targets = []
    monkeypatch.setattr(scrape_one, "BrowserSessionManager", StubManager)
    return StubManager


def test_offline_parses_saved_markup(product_page, capsys) -> None:
    assert scrape_one.main([str(product_page), "--offline"]) == 0
    assert "Price found: 19.99" in capsys.readouterr().out


def test_offline_without_price_exits_nonzero(tmp_path, capsys) -> None:
    path = tmp_path / "empty.html"
    path.write_text("<html><body>Sold out</body></html>", encoding="utf-8")
    assert scrape_one.main([str(path), "--offline"]) == 1
    assert "No price found" in capsys.readouterr().out


def test_offline_rejects_urls() -> None:
    assert scrape_one.main(["https://shop.example/p/1", "--offline"]) == 1


def test_missing_file_exits_nonzero(tmp_path, stub_manager) -> None:
    assert scrape_one.main([str(tmp_path / "nope.html")]) == 1
    assert stub_manager.targets == []


def test_browser_scrape_writes_artifacts(product_page, tmp_path, stub_manager, capsys) -> None:
    results = tmp_path / "out"

    assert scrape_one.main([str(product_page), "--results-dir", str(results)]) == 0

    out = capsys.readouterr().out
    assert "Price found: 12.50" in out
    assert stub_manager.targets == [str(product_page)]
    assert len(list(results.glob("single_scrape_*.png"))) == 1
    assert len(list(results.glob("single_scrape_*.html"))) == 1


def test_browser_failure_exits_nonzero(tmp_path, stub_manager) -> None:
    stub_manager.error = ScrapeTimeoutError(url="https://shop.example/p/1")
    assert scrape_one.main(["https://shop.example/p/1", "--results-dir", str(tmp_path)]) == 1
    assert list(tmp_path.iterdir()) == []


def test_offline_reads_non_utf8_markup(tmp_path, capsys) -> None:
    path = tmp_path / "latin1.html"
    path.write_bytes('<html><body><span class="price">\xa312.75</span></body></html>'.encode("latin-1"))

    assert scrape_one.main([str(path), "--offline"]) == 0
    assert "Price found: 12.75" in capsys.readouterr().out
