from __future__ import annotations

import os
from datetime import timedelta
from unittest.mock import patch

from conftest import NOW

from pricewatch.retention import RetentionSweeper
from pricewatch.storage import repo
from pricewatch.storage.artifacts import ArtifactStore
from pricewatch.storage.models_sql import ScrapingTask


def _executed_task(session_factory, tmp_path, *, age_days: float, files: bool = True) -> int:
    store = ArtifactStore(tmp_path / "results")
    with session_factory.begin() as session:
        item = repo.create_item(session, url="https://shop.example", name="Item", target_price=5.0, now=NOW)
        task = session.query(ScrapingTask).filter_by(item_id=item.id).one()
        paths = store.save_for_task(task.id, b"png", "<html></html>")
        if not files:
            os.remove(paths.screenshot_path)
            os.remove(paths.html_path)
        repo.record_task_outcome(
            session,
            task.id,
            success=True,
            executed_at=NOW - timedelta(days=age_days),
            price=4.0,
            screenshot_path=paths.screenshot_path,
            html_path=paths.html_path,
        )
        return task.id


def _task(session_factory, task_id):
    with session_factory() as session:
        return session.get(ScrapingTask, task_id)


def test_sweep_deletes_old_artifacts_and_clears_references(session_factory, tmp_path) -> None:
    old_id = _executed_task(session_factory, tmp_path, age_days=120)
    fresh_id = _executed_task(session_factory, tmp_path, age_days=10)
    old_paths = (_task(session_factory, old_id).screenshot_path, _task(session_factory, old_id).html_path)

    stats = RetentionSweeper(session_factory, retention_days=90, clock=lambda: NOW).sweep()

    assert (stats.tasks, stats.deleted, stats.missing, stats.errors) == (1, 2, 0, 0)
    assert not any(os.path.exists(path) for path in old_paths)
    old = _task(session_factory, old_id)
    assert old.screenshot_path is None and old.html_path is None
    fresh = _task(session_factory, fresh_id)
    assert fresh.screenshot_path is not None and os.path.exists(fresh.screenshot_path)


def test_missing_files_are_not_errors(session_factory, tmp_path) -> None:
    task_id = _executed_task(session_factory, tmp_path, age_days=100, files=False)

    stats = RetentionSweeper(session_factory, clock=lambda: NOW).sweep()

    assert (stats.deleted, stats.missing, stats.errors) == (0, 2, 0)
    assert _task(session_factory, task_id).html_path is None


def test_deletion_errors_are_counted_and_references_kept(session_factory, tmp_path) -> None:
    task_id = _executed_task(session_factory, tmp_path, age_days=100)

    with patch("pricewatch.storage.artifacts.os.remove", side_effect=PermissionError("read-only")):
        stats = RetentionSweeper(session_factory, clock=lambda: NOW).sweep()

    assert stats.errors == 2
    assert _task(session_factory, task_id).html_path is not None


def test_pending_tasks_are_never_swept(session_factory) -> None:
    with session_factory.begin() as session:
        repo.create_item(session, url="https://shop.example", name="Item", target_price=5.0, now=NOW - timedelta(days=400))
    stats = RetentionSweeper(session_factory, clock=lambda: NOW).sweep()
    assert stats.tasks == 0
