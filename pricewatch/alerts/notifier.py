"""Alert notification helper utilities."""

from __future__ import annotations

import html
import os
import time
from typing import Iterable

import requests
from tenacity import retry, stop_after_attempt, wait_exponential

from pricewatch.errors import DeliveryError
from pricewatch.logging_config import get_logger
from pricewatch.normalizers import format_price
from pricewatch.storage.models_sql import Item

LOGGER = get_logger(__name__)

NOOP = "noop"


class Notifier:
    """Send alerts via Telegram or SendGrid when credentials are present.

    Without credentials (or in test mode) alerts are only logged and count
    as delivered.
    """

    def __init__(self, *, test_mode: bool = False) -> None:
        self.test_mode = test_mode
        if test_mode:
            self._telegram_token = self._telegram_chat = None
            self._sendgrid_key = self._sendgrid_to = self._sendgrid_from = None
            LOGGER.info("Test mode: messaging transports not initialised")
        else:
            self._telegram_token = os.getenv("TELEGRAM_BOT_TOKEN")
            self._telegram_chat = os.getenv("TELEGRAM_CHAT_ID")
            self._sendgrid_key = os.getenv("SENDGRID_API_KEY")
            self._sendgrid_to = os.getenv("SENDGRID_TO")
            self._sendgrid_from = os.getenv("SENDGRID_FROM")
        self._last_send = 0.0

    @property
    def transport(self) -> str | None:
        if self._telegram_token and self._telegram_chat:
            return "telegram"
        if self._sendgrid_key and self._sendgrid_to and self._sendgrid_from:
            return "sendgrid"
        return None

    def send_price_alert(self, item: Item, price: float) -> str:
        """Deliver a price-drop alert; returns the transport used.

        Raises :class:`DeliveryError` once retries are exhausted.
        """

        lines = self.build_price_drop_lines(item, price)
        return self._dispatch(f"Price drop: {item.name}", lines, item_id=item.id)

    @staticmethod
    def build_price_drop_lines(item: Item, price: float) -> list[str]:
        return [
            "\U0001f389 Price Drop Alert! \U0001f389",
            "",
            f"{item.name} is now {format_price(price)}!",
            f"Target price: {format_price(item.target_price)}",
            item.url,
        ]

    def _dispatch(self, subject: str, lines: list[str], *, item_id: int | None = None) -> str:
        transport = self.transport
        if transport is None:
            LOGGER.info("Alert (%s): %s", NOOP, " | ".join(line for line in lines if line))
            return NOOP
        try:
            if transport == "telegram":
                self._send_telegram(lines)
            else:
                self._send_sendgrid(subject, lines)
        except Exception as exc:
            raise DeliveryError(
                f"Alert delivery failed via {transport}: {exc}",
                transport=transport,
                item_id=item_id,
            ) from exc
        return transport

    def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_send
        if elapsed < 1:
            time.sleep(1 - elapsed)
        self._last_send = time.monotonic()

    @retry(wait=wait_exponential(multiplier=0.5, max=10), stop=stop_after_attempt(5), reraise=True)
    def _send_telegram(self, lines: Iterable[str]) -> None:
        self._throttle()
        url = f"https://api.telegram.org/bot{self._telegram_token}/sendMessage"
        payload = {
            "chat_id": self._telegram_chat,
            "text": "\n".join(lines),
            "disable_web_page_preview": False,
        }
        response = requests.post(url, json=payload, timeout=8)
        if response.status_code >= 400:
            raise RuntimeError(f"HTTP {response.status_code}")

    @retry(wait=wait_exponential(multiplier=0.5, max=10), stop=stop_after_attempt(5), reraise=True)
    def _send_sendgrid(self, subject: str, lines: list[str]) -> None:
        self._throttle()
        body = "".join(f"<p>{html.escape(line)}</p>" for line in lines[:-1] if line)
        link = html.escape(lines[-1])
        body += f"<p><a href=\"{link}\">{link}</a></p>"
        payload = {
            "from": {"email": self._sendgrid_from},
            "personalizations": [{"to": [{"email": self._sendgrid_to}], "subject": subject}],
            "content": [{"type": "text/html", "value": body}],
        }
        headers = {"Authorization": f"Bearer {self._sendgrid_key}"}
        response = requests.post(
            "https://api.sendgrid.com/v3/mail/send",
            json=payload,
            headers=headers,
            timeout=8,
        )
        if response.status_code >= 300:
            raise RuntimeError(f"HTTP {response.status_code}")
