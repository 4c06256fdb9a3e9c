"""Retention sweep for aged screenshot and markup artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.logging_config import get_logger
from pricewatch.storage import repo
from pricewatch.storage.artifacts import ArtifactStore
from pricewatch.storage.models_sql import utcnow

LOGGER = get_logger(__name__)


@dataclass
class SweepStats:
    tasks: int = 0
    deleted: int = 0
    missing: int = 0
    errors: int = 0


class RetentionSweeper:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        retention_days: float = 90,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.retention = timedelta(days=retention_days)
        self._clock = clock

    def sweep(self) -> SweepStats:
        """Delete artifacts of terminal tasks past the horizon and clear their paths.

        A task whose files could not be removed keeps its references so the
        next sweep tries again.
        """

        stats = SweepStats()
        before = self._clock() - self.retention
        try:
            with self._session_factory() as session:
                for task in repo.expired_artifact_tasks(session, before=before):
                    stats.tasks += 1
                    failed = False
                    for path in (task.screenshot_path, task.html_path):
                        if not path:
                            continue
                        try:
                            if ArtifactStore.delete(path):
                                stats.deleted += 1
                            else:
                                stats.missing += 1
                        except OSError as exc:
                            failed = True
                            stats.errors += 1
                            LOGGER.warning("Could not delete artifact %s: %s", path, exc)
                    if not failed:
                        repo.clear_artifacts(session, task)
                session.commit()
        except SQLAlchemyError as exc:
            LOGGER.error("Retention sweep aborted: %s", exc)
            return stats

        LOGGER.info(
            "Retention sweep completed | tasks=%d | deleted=%d | missing=%d | errors=%d",
            stats.tasks,
            stats.deleted,
            stats.missing,
            stats.errors,
        )
        return stats
