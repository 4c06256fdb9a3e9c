"""Repository helpers for interacting with persistent storage.

Lookups that find nothing return ``None`` or an empty list; only genuine
database failures surface as SQLAlchemy exceptions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from sqlalchemy import and_, exists, func, select
from sqlalchemy.orm import Session, aliased

from .models_sql import PRICE_DROP, Item, ItemDatapoint, Notification, ScrapingTask, utcnow


def create_item(
    session: Session,
    *,
    url: str,
    name: str,
    target_price: float,
    image_url: str | None = None,
    store_id: int | None = None,
    enabled: bool = True,
    now: datetime | None = None,
) -> Item:
    """Insert an item together with its first task, due immediately."""

    item = Item(
        url=url,
        name=name,
        target_price=target_price,
        image_url=image_url,
        store_id=store_id,
        enabled=enabled,
    )
    session.add(item)
    session.flush()
    create_task(session, item.id, item.url, now or utcnow())
    return item


def get_item(session: Session, item_id: int) -> Item | None:
    return session.get(Item, item_id)


def create_task(session: Session, item_id: int, url: str, scheduled_time: datetime) -> ScrapingTask:
    task = ScrapingTask(item_id=item_id, url=url, scheduled_time=scheduled_time)
    session.add(task)
    session.flush()
    return task


def get_pending_tasks(
    session: Session,
    *,
    now: datetime,
    exclude_ids: Iterable[int] = (),
    limit: int = 5,
) -> list[ScrapingTask]:
    """Return due, unexecuted tasks of enabled items, oldest first."""

    stmt = (
        select(ScrapingTask)
        .join(Item, Item.id == ScrapingTask.item_id)
        .where(
            ScrapingTask.execution_time.is_(None),
            ScrapingTask.scheduled_time <= now,
            Item.enabled.is_(True),
        )
    )
    excluded = list(exclude_ids)
    if excluded:
        stmt = stmt.where(ScrapingTask.id.not_in(excluded))
    stmt = stmt.order_by(ScrapingTask.scheduled_time.asc(), ScrapingTask.id.asc()).limit(limit)
    return list(session.execute(stmt).scalars())


def count_pending_tasks(session: Session, item_id: int) -> int:
    stmt = select(func.count(ScrapingTask.id)).where(
        ScrapingTask.item_id == item_id,
        ScrapingTask.execution_time.is_(None),
    )
    return int(session.execute(stmt).scalar_one())


def record_task_outcome(
    session: Session,
    task_id: int,
    *,
    success: bool,
    executed_at: datetime,
    screenshot_path: str | None = None,
    html_path: str | None = None,
    error_message: str | None = None,
    price: float | None = None,
) -> ScrapingTask | None:
    """Mark a pending task terminal, appending the datapoint on success.

    Returns ``None`` when the task is unknown or was already executed; the
    caller commits both writes together.
    """

    task = session.get(ScrapingTask, task_id)
    if task is None or task.execution_time is not None:
        return None

    if success and price is not None:
        session.add(ItemDatapoint(item_id=task.item_id, price=price, timestamp=executed_at))

    task.execution_time = executed_at
    task.success = success
    task.screenshot_path = screenshot_path
    task.html_path = html_path
    task.error_message = error_message
    session.flush()
    return task


def insert_datapoint(session: Session, item_id: int, price: float, *, timestamp: datetime | None = None) -> ItemDatapoint:
    datapoint = ItemDatapoint(item_id=item_id, price=price, timestamp=timestamp or utcnow())
    session.add(datapoint)
    session.flush()
    return datapoint


def items_needing_tasks(session: Session) -> list[Item]:
    """Enabled items that currently have no pending task."""

    pending = exists().where(
        ScrapingTask.item_id == Item.id,
        ScrapingTask.execution_time.is_(None),
    )
    stmt = select(Item).where(Item.enabled.is_(True), ~pending).order_by(Item.id)
    return list(session.execute(stmt).scalars())


def _latest_datapoints_subquery():
    datapoint = aliased(ItemDatapoint)
    row_number = func.row_number().over(
        partition_by=datapoint.item_id,
        order_by=(datapoint.timestamp.desc(), datapoint.id.desc()),
    )
    return (
        select(
            datapoint.item_id.label("item_id"),
            datapoint.price.label("price"),
            datapoint.timestamp.label("timestamp"),
            row_number.label("rn"),
        )
    ).subquery("latest_prices")


def latest_price(session: Session, item_id: int) -> float | None:
    stmt = (
        select(ItemDatapoint.price)
        .where(ItemDatapoint.item_id == item_id)
        .order_by(ItemDatapoint.timestamp.desc(), ItemDatapoint.id.desc())
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


def price_drop_candidates(session: Session) -> list[tuple[Item, float]]:
    """Enabled items whose most recent price is at or below their target."""

    latest = _latest_datapoints_subquery()
    stmt = (
        select(Item, latest.c.price)
        .join(latest, and_(latest.c.item_id == Item.id, latest.c.rn == 1))
        .where(
            Item.enabled.is_(True),
            Item.enable_notifications.is_(True),
            latest.c.price <= Item.target_price,
        )
        .order_by(Item.id)
    )
    return [(item, float(price)) for item, price in session.execute(stmt).all()]


def has_recent_notification(
    session: Session,
    item_id: int,
    price: float,
    *,
    since: datetime,
    notification_type: str = PRICE_DROP,
) -> bool:
    stmt = select(
        exists().where(
            Notification.item_id == item_id,
            Notification.price == price,
            Notification.type == notification_type,
            Notification.sent_at >= since,
        )
    )
    return bool(session.execute(stmt).scalar())


def insert_notification(
    session: Session,
    item_id: int,
    price: float,
    *,
    sent_at: datetime | None = None,
    notification_type: str = PRICE_DROP,
) -> Notification:
    notification = Notification(
        item_id=item_id,
        price=price,
        sent_at=sent_at or utcnow(),
        type=notification_type,
    )
    session.add(notification)
    session.flush()
    return notification


def expired_artifact_tasks(session: Session, *, before: datetime) -> list[ScrapingTask]:
    """Executed tasks older than *before* that still reference artifact files."""

    stmt = (
        select(ScrapingTask)
        .where(
            ScrapingTask.execution_time.is_not(None),
            ScrapingTask.execution_time < before,
            (ScrapingTask.screenshot_path.is_not(None)) | (ScrapingTask.html_path.is_not(None)),
        )
        .order_by(ScrapingTask.execution_time.asc())
    )
    return list(session.execute(stmt).scalars())


def clear_artifacts(session: Session, task: ScrapingTask) -> None:
    task.screenshot_path = None
    task.html_path = None
    session.flush()
