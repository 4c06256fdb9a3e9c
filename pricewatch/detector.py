"""Price-drop detection with a windowed notification ledger."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.alerts.notifier import Notifier
from pricewatch.errors import DeliveryError, PersistenceError
from pricewatch.logging_config import get_logger
from pricewatch.storage import repo
from pricewatch.storage.models_sql import PRICE_DROP, Item, utcnow

LOGGER = get_logger(__name__)


class PriceDropDetector:
    """Alerts when an item's latest price is at or below its target.

    An alert for the same (item, price) is suppressed while a ledger entry
    younger than ``dedup_days`` exists. The ledger is written only after the
    channel accepted the message, so a failed delivery is retried next pass.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        notifier: Notifier,
        *,
        dedup_days: float = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.notifier = notifier
        self.dedup_window = timedelta(days=dedup_days)
        self._clock = clock

    def pending_alerts(self) -> list[tuple[Item, float]]:
        since = self._clock() - self.dedup_window
        try:
            with self._session_factory() as session:
                return [
                    (item, price)
                    for item, price in repo.price_drop_candidates(session)
                    if not repo.has_recent_notification(session, item.id, price, since=since)
                ]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not query price drops: {exc}") from exc

    async def check_price_drops(self) -> int:
        """Run one detection pass; returns the number of alerts delivered and recorded."""

        try:
            alerts = self.pending_alerts()
        except PersistenceError as exc:
            LOGGER.error("Price-drop pass aborted: %s", exc)
            return 0

        LOGGER.info("Found %d item(s) with price drops", len(alerts))
        sent = 0
        for item, price in alerts:
            try:
                transport = await asyncio.to_thread(self.notifier.send_price_alert, item, price)
            except DeliveryError as exc:
                LOGGER.warning("Price alert not delivered; will retry next pass: %s", exc)
                continue

            try:
                with self._session_factory.begin() as session:
                    repo.insert_notification(
                        session,
                        item.id,
                        price,
                        sent_at=self._clock(),
                        notification_type=PRICE_DROP,
                    )
            except SQLAlchemyError as exc:
                LOGGER.error(
                    "Alert delivered but ledger write failed | item=%s | price=%.2f | error=%s",
                    item.id,
                    price,
                    exc,
                )
                continue

            sent += 1
            LOGGER.info(
                "Sent price drop notification | item=%s | price=%.2f | transport=%s",
                item.id,
                price,
                transport,
            )
        return sent
