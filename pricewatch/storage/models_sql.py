"""SQLAlchemy ORM models for application storage."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

PRICE_DROP = "price_drop"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""


class Store(Base):
    """Retailer a tracked item belongs to."""

    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    website: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Item(Base):
    """Tracked product. Owned by the management interface; read-only here."""

    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    target_price: Mapped[float] = mapped_column(Float, nullable=False)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    store_id: Mapped[int | None] = mapped_column(ForeignKey("stores.id"), nullable=True)


class ItemDatapoint(Base):
    """One observed price for an item."""

    __tablename__ = "item_datapoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (Index("ix_datapoints_item_ts", "item_id", "timestamp"),)


class ScrapingTask(Base):
    """A scheduled scrape attempt; pending while execution_time is NULL."""

    __tablename__ = "scraping_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    execution_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    success: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    screenshot_path: Mapped[str | None] = mapped_column(String, nullable=True)
    html_path: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_tasks_pending", "execution_time", "scheduled_time"),
        Index("ix_tasks_item", "item_id"),
    )

    @property
    def outcome(self) -> str:
        if self.execution_time is None:
            return "pending"
        return "success" if self.success else "failure"


class Notification(Base):
    """Ledger of delivered alerts used for deduplication."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    type: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (Index("ix_notifications_dedup", "item_id", "price", "type", "sent_at"),)
