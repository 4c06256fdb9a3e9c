"""Command-line interface entry point for the pricewatch worker."""

from __future__ import annotations

import argparse
import asyncio
import signal
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.alerts.notifier import Notifier
from pricewatch.browser import BrowserSessionManager
from pricewatch.config import Settings, load_config
from pricewatch.detector import PriceDropDetector
from pricewatch.health import HealthMonitor
from pricewatch.logging_config import LOG_DIR, get_logger, quiet_library_loggers
from pricewatch.retention import RetentionSweeper
from pricewatch.scheduler import Rescheduler, TaskScheduler
from pricewatch.storage.artifacts import ArtifactStore
from pricewatch.storage.db import get_engine, init_db_safe, make_session

LOGGER = get_logger(__name__)


def _guarded(name: str, func: Callable[[], Awaitable[None]]) -> Callable[[], Awaitable[None]]:
    async def scheduled_pass() -> None:
        try:
            await func()
        except Exception:
            LOGGER.exception("Scheduled %s pass failed", name)

    return scheduled_pass


class MonitorService:
    """Owns the four periodic loops and the resources they share."""

    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        *,
        browser: BrowserSessionManager | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings
        self.browser = browser or BrowserSessionManager(
            scrape_timeout=settings.scrape_timeout,
            navigation_timeout=settings.navigation_timeout,
            close_timeout=settings.close_timeout,
            proxy=settings.proxy,
            user_agent=settings.user_agent,
        )
        self.tasks = TaskScheduler(
            session_factory,
            self.browser,
            ArtifactStore(settings.results_dir),
            health=HealthMonitor(log_path=Path(LOG_DIR) / "health.log"),
            batch_size=settings.batch_size,
        )
        self.rescheduler = Rescheduler(
            session_factory,
            cycle_hours=settings.cycle_hours,
            jitter_minutes=settings.jitter_minutes,
        )
        self.detector = PriceDropDetector(
            session_factory,
            notifier or Notifier(test_mode=settings.test_mode),
            dedup_days=settings.dedup_days,
        )
        self.sweeper = RetentionSweeper(session_factory, retention_days=settings.retention_days)

    async def poll_pending(self) -> None:
        await self.tasks.poll_pending()

    async def reschedule(self) -> None:
        # Synchronous database work stays off the event loop.
        await asyncio.to_thread(self.rescheduler.schedule_new_tasks)

    async def detect_drops(self) -> None:
        await self.detector.check_price_drops()

    async def sweep_retention(self) -> None:
        await asyncio.to_thread(self.sweeper.sweep)

    async def run_once(self) -> None:
        await self.poll_pending()
        await self.reschedule()
        await self.detect_drops()
        await self.sweep_retention()

    def build_scheduler(self) -> AsyncIOScheduler:
        """One interval job per loop; a job never overlaps its own previous run."""

        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        start = datetime.now(timezone.utc)
        jobs = (
            ("poll-pending", self.poll_pending, {"seconds": self.settings.poll_seconds}),
            ("reschedule", self.reschedule, {"seconds": self.settings.reschedule_seconds}),
            ("detect-drops", self.detect_drops, {"seconds": self.settings.detect_seconds}),
            ("sweep-retention", self.sweep_retention, {"hours": self.settings.sweep_hours}),
        )
        for job_id, func, interval in jobs:
            scheduler.add_job(
                _guarded(job_id, func),
                "interval",
                id=job_id,
                max_instances=1,
                coalesce=True,
                next_run_time=start,
                **interval,
            )
        return scheduler

    async def shutdown(self) -> None:
        await self.browser.terminate_all()

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:  # pragma: no cover - Windows event loops
                pass

        scheduler = self.build_scheduler()
        scheduler.start()
        LOGGER.info(
            "Worker started | poll=%ss | reschedule=%ss | detect=%ss | sweep=%sh",
            self.settings.poll_seconds,
            self.settings.reschedule_seconds,
            self.settings.detect_seconds,
            self.settings.sweep_hours,
        )
        try:
            await stop.wait()
            LOGGER.info("Shutdown signal received; stopping scheduler")
        finally:
            scheduler.shutdown(wait=False)
            await self.shutdown()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the worker."""

    parser = argparse.ArgumentParser(description="Run the pricewatch monitoring worker.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run every loop a single time instead of on a schedule.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML configuration file (default: $PRICEWATCH_CONFIG or pricewatch/config.yml).",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables and exit.",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


async def _async_main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    load_dotenv()
    quiet_library_loggers()

    settings = Settings.from_config(load_config(args.config))
    engine = get_engine(settings.sqlite_path)
    init_db_safe(engine)
    LOGGER.info("Database initialized at %s (existing tables preserved)", settings.sqlite_path)
    if args.init_db:
        engine.dispose()
        return

    service = MonitorService(settings, make_session(engine))
    try:
        if args.once:
            await service.run_once()
        else:
            await service.run_forever()
    finally:
        await service.shutdown()
        engine.dispose()


def main(argv: Iterable[str] | None = None) -> None:
    try:
        asyncio.run(_async_main(argv))
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
    except Exception as exc:
        LOGGER.exception("Worker crashed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
