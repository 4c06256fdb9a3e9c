from __future__ import annotations

import pytest

from pricewatch import playwright_env


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "PRICEWATCH_PROXY",
        "PRICEWATCH_HEADLESS",
        "PRICEWATCH_CHROMIUM_ARGS",
        "PRICEWATCH_BROWSER_CHANNEL",
        "PRICEWATCH_IGNORE_HTTPS_ERRORS",
    ):
        monkeypatch.delenv(key, raising=False)


def test_proxy_override_takes_precedence(monkeypatch) -> None:
    monkeypatch.setenv("PRICEWATCH_PROXY", "http://env-proxy:8080")
    assert playwright_env.proxy_config("http://cli-proxy:3128") == {"server": "http://cli-proxy:3128"}
    assert playwright_env.proxy_config() == {"server": "http://env-proxy:8080"}


def test_bare_proxy_host_gets_http_scheme() -> None:
    assert playwright_env.proxy_config("10.0.0.5:3128") == {"server": "http://10.0.0.5:3128"}
    assert playwright_env.proxy_config() is None


def test_launch_kwargs_honour_environment(monkeypatch) -> None:
    monkeypatch.setenv("PRICEWATCH_HEADLESS", "0")
    monkeypatch.setenv("PRICEWATCH_CHROMIUM_ARGS", "--lang=de-DE --mute-audio")
    monkeypatch.setenv("PRICEWATCH_BROWSER_CHANNEL", "chrome")

    kwargs = playwright_env.launch_kwargs("proxy.local:9000")

    assert kwargs["headless"] is False
    assert kwargs["args"][-2:] == ["--lang=de-DE", "--mute-audio"]
    assert kwargs["channel"] == "chrome"
    assert kwargs["proxy"] == {"server": "http://proxy.local:9000"}


def test_context_kwargs_are_fresh_per_call(monkeypatch) -> None:
    first = playwright_env.context_kwargs("agent/1.0")
    first["viewport"]["width"] = 10
    assert playwright_env.context_kwargs()["viewport"] == {"width": 1920, "height": 1080}
    assert first["user_agent"] == "agent/1.0"
    assert "ignore_https_errors" not in first

    monkeypatch.setenv("PRICEWATCH_IGNORE_HTTPS_ERRORS", "1")
    assert playwright_env.context_kwargs()["ignore_https_errors"] is True
