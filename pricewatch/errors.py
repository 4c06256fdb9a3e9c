"""Custom exception types for pricewatch."""

from __future__ import annotations

from typing import Optional


class _ContextError(Exception):
    """Base class rendering optional task/item/url context after the message."""

    default_message = "Operation failed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        task_id: Optional[int] = None,
        item_id: Optional[int] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.task_id = task_id
        self.item_id = item_id
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.task_id is not None:
            context_parts.append(f"task={self.task_id}")
        if self.item_id is not None:
            context_parts.append(f"item={self.item_id}")
        if self.url:
            context_parts.append(f"url={self.url}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class TransientBrowserError(_ContextError):
    """Raised when navigation fails or the browser crashes during a scrape."""

    default_message = "Browser session failed."


class ScrapeTimeoutError(TransientBrowserError):
    """Raised when a scrape exceeds its hard wall-clock deadline."""

    default_message = "Scraping operation timed out."


class ExtractionMiss(_ContextError):
    """Raised when no extraction rule produced a price."""

    default_message = "Could not extract price."


class PersistenceError(_ContextError):
    """Raised when the task store cannot be read or written."""

    default_message = "Task store operation failed."


class DeliveryError(_ContextError):
    """Raised when an alert could not be delivered through any transport."""

    default_message = "Alert delivery failed."

    def __init__(self, message: Optional[str] = None, *, transport: Optional[str] = None, **context) -> None:
        self.transport = transport
        super().__init__(message, **context)
