"""Polling loop that dispatches due scraping tasks, and the task rescheduler."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.browser import BrowserSessionManager, ScrapeResult
from pricewatch.errors import ExtractionMiss, PersistenceError, TransientBrowserError
from pricewatch.guard import InFlightRegistry
from pricewatch.health import HealthMonitor
from pricewatch.logging_config import get_logger
from pricewatch.storage import repo
from pricewatch.storage.artifacts import ArtifactPaths, ArtifactStore
from pricewatch.storage.models_sql import utcnow

LOGGER = get_logger(__name__)

NO_ARTIFACTS = ArtifactPaths(screenshot_path=None, html_path=None)


@dataclass(frozen=True)
class PendingTask:
    id: int
    item_id: int
    url: str
    scheduled_time: datetime


@dataclass(frozen=True)
class TaskOutcome:
    success: bool
    price: float | None = None
    error_message: str | None = None
    artifacts: ArtifactPaths = NO_ARTIFACTS


class TaskScheduler:
    """Selects due tasks and runs them strictly one after another."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        browser: BrowserSessionManager,
        artifacts: ArtifactStore,
        *,
        guard: InFlightRegistry | None = None,
        health: HealthMonitor | None = None,
        batch_size: int = 5,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self.browser = browser
        self.artifacts = artifacts
        self.guard = guard if guard is not None else InFlightRegistry()
        self.health = health
        self.batch_size = batch_size
        self._clock = clock
        self._sleep = sleep

    def select_due_tasks(self) -> list[PendingTask]:
        try:
            with self._session_factory() as session:
                rows = repo.get_pending_tasks(
                    session,
                    now=self._clock(),
                    exclude_ids=self.guard.snapshot(),
                    limit=self.batch_size,
                )
                return [PendingTask(row.id, row.item_id, row.url, row.scheduled_time) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not query pending tasks: {exc}") from exc

    async def poll_pending(self) -> int:
        """Run one tick; returns the number of tasks executed."""

        try:
            tasks = self.select_due_tasks()
            LOGGER.info("Found %d pending task(s)", len(tasks))
            executed = 0
            for index, task in enumerate(tasks):
                if index:
                    await self._back_off()
                if await self.process_task(task) is not None:
                    executed += 1
            return executed
        except PersistenceError as exc:
            LOGGER.error("Poll tick aborted: %s", exc)
            return 0

    async def _back_off(self) -> None:
        delay = self.health.recommended_extra_delay() if self.health is not None else 0.0
        if delay > 0:
            LOGGER.info("Scrape health %s; pausing %.1fs before next task", self.health.state.value, delay)
            await self._sleep(delay)

    async def process_task(self, task: PendingTask) -> TaskOutcome | None:
        """Execute *task* once; ``None`` if it is already in flight."""

        with self.guard.hold(task.id) as claimed:
            if not claimed:
                LOGGER.info("Task %s is already being processed", task.id)
                return None
            LOGGER.info("Processing task=%s | item=%s | url=%s", task.id, task.item_id, task.url)
            outcome = await self._execute(task)
            self._record(task, outcome)
            if outcome.success:
                LOGGER.info("Task %s succeeded | price=%.2f", task.id, outcome.price)
            else:
                LOGGER.warning("Task %s failed: %s", task.id, outcome.error_message)
            return outcome

    async def _execute(self, task: PendingTask) -> TaskOutcome:
        try:
            result = await self.browser.scrape(task.url, task_id=task.id)
        except TransientBrowserError as exc:
            if self.health is not None:
                self.health.record_browser_error(task_id=task.id, reason=str(exc))
            return TaskOutcome(success=False, error_message=str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected error scraping task %s", task.id)
            return TaskOutcome(success=False, error_message=f"Unexpected scrape error: {exc}")

        paths = self._save_artifacts(task, result)
        if result.price is None:
            miss = ExtractionMiss(url=task.url, task_id=task.id)
            if self.health is not None:
                self.health.record_extraction_miss(task_id=task.id, url=task.url)
            return TaskOutcome(success=False, error_message=str(miss), artifacts=paths)

        if self.health is not None:
            self.health.record_price(task_id=task.id, price=result.price)
        return TaskOutcome(success=True, price=result.price, artifacts=paths)

    def _save_artifacts(self, task: PendingTask, result: ScrapeResult) -> ArtifactPaths:
        try:
            return self.artifacts.save_for_task(task.id, result.screenshot, result.html)
        except OSError as exc:
            LOGGER.warning("Could not write artifacts for task %s: %s", task.id, exc)
            return NO_ARTIFACTS

    def _record(self, task: PendingTask, outcome: TaskOutcome) -> None:
        # Datapoint and terminal status commit together or not at all.
        try:
            with self._session_factory.begin() as session:
                recorded = repo.record_task_outcome(
                    session,
                    task.id,
                    success=outcome.success,
                    executed_at=self._clock(),
                    screenshot_path=outcome.artifacts.screenshot_path,
                    html_path=outcome.artifacts.html_path,
                    error_message=outcome.error_message,
                    price=outcome.price,
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not record outcome: {exc}", task_id=task.id) from exc
        if recorded is None:
            LOGGER.warning("Task %s was already terminal; outcome discarded", task.id)


def next_scheduled_time(
    now: datetime,
    *,
    cycle: timedelta = timedelta(hours=24),
    jitter: timedelta = timedelta(hours=1),
    rng: random.Random | None = None,
) -> datetime:
    """``now + cycle`` shifted by a uniform offset in ``[-jitter, +jitter]``."""

    spread = jitter.total_seconds()
    offset = (rng or random).uniform(-spread, spread)
    return now + cycle + timedelta(seconds=offset)


class Rescheduler:
    """Gives every enabled item without a pending task its next task."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        cycle_hours: float = 24,
        jitter_minutes: float = 60,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.cycle = timedelta(hours=cycle_hours)
        self.jitter = timedelta(minutes=jitter_minutes)
        self._rng = rng or random.Random()
        self._clock = clock

    def schedule_new_tasks(self) -> int:
        """Returns the number of tasks created."""

        created = 0
        try:
            with self._session_factory() as session:
                targets = [(item.id, item.url) for item in repo.items_needing_tasks(session)]
                LOGGER.info("Found %d item(s) needing new tasks", len(targets))
                for item_id, url in targets:
                    scheduled = next_scheduled_time(
                        self._clock(), cycle=self.cycle, jitter=self.jitter, rng=self._rng
                    )
                    try:
                        repo.create_task(session, item_id, url, scheduled)
                        session.commit()
                    except SQLAlchemyError as exc:
                        session.rollback()
                        LOGGER.error("Error scheduling task for item %s: %s", item_id, exc)
                        continue
                    created += 1
                    LOGGER.info("Scheduled new task | item=%s | at=%s", item_id, scheduled.isoformat())
        except SQLAlchemyError as exc:
            LOGGER.error("Reschedule pass aborted: %s", PersistenceError(str(exc)))
        return created
