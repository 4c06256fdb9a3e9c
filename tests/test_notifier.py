from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from pricewatch.alerts.notifier import Notifier
from pricewatch.errors import DeliveryError

ITEM = SimpleNamespace(id=7, name="Desk Lamp", target_price=50.0, url="https://shop.example/lamp")


def _response(status: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    return response


@pytest.fixture()
def telegram_env(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")
    for key in ("SENDGRID_API_KEY", "SENDGRID_TO", "SENDGRID_FROM"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def no_transport_env(monkeypatch):
    for key in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "SENDGRID_API_KEY", "SENDGRID_TO", "SENDGRID_FROM"):
        monkeypatch.delenv(key, raising=False)


def test_alert_lines_mention_price_and_target() -> None:
    lines = Notifier.build_price_drop_lines(ITEM, 49.99)
    assert "Desk Lamp is now 49.99!" in lines
    assert "Target price: 50.00" in lines
    assert lines[-1] == ITEM.url


def test_telegram_payload(telegram_env) -> None:
    with patch("pricewatch.alerts.notifier.requests.post", return_value=_response(200)) as post:
        assert Notifier().send_price_alert(ITEM, 49.99) == "telegram"

    url = post.call_args.args[0]
    payload = post.call_args.kwargs["json"]
    assert url == "https://api.telegram.org/bottoken/sendMessage"
    assert payload["chat_id"] == "42"
    assert "Desk Lamp is now 49.99!" in payload["text"]


def test_telegram_failure_raises_delivery_error_after_retries(telegram_env) -> None:
    with patch("pricewatch.alerts.notifier.requests.post", return_value=_response(502)) as post:
        with pytest.raises(DeliveryError) as excinfo:
            Notifier().send_price_alert(ITEM, 49.99)

    assert post.call_count == 5
    assert excinfo.value.transport == "telegram"
    assert "item=7" in str(excinfo.value)


def test_sendgrid_used_when_telegram_missing(monkeypatch, no_transport_env) -> None:
    monkeypatch.setenv("SENDGRID_API_KEY", "key")
    monkeypatch.setenv("SENDGRID_TO", "me@example.com")
    monkeypatch.setenv("SENDGRID_FROM", "bot@example.com")

    with patch("pricewatch.alerts.notifier.requests.post", return_value=_response(202)) as post:
        assert Notifier().send_price_alert(ITEM, 10.0) == "sendgrid"

    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer key"
    assert post.call_args.kwargs["json"]["personalizations"][0]["subject"] == "Price drop: Desk Lamp"


def test_without_credentials_alert_is_only_logged(no_transport_env) -> None:
    with patch("pricewatch.alerts.notifier.requests.post") as post:
        assert Notifier().send_price_alert(ITEM, 10.0) == "noop"
    post.assert_not_called()


def test_test_mode_ignores_credentials(telegram_env) -> None:
    notifier = Notifier(test_mode=True)
    assert notifier.transport is None
    with patch("pricewatch.alerts.notifier.requests.post") as post:
        assert notifier.send_price_alert(ITEM, 10.0) == "noop"
    post.assert_not_called()
