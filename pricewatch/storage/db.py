"""SQLite engine and session factory for the task store."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pricewatch.logging_config import get_logger

from .models_sql import Base

LOGGER = get_logger(__name__)

MEMORY = ":memory:"


def _install_pragmas(engine: Engine, busy_ms: int) -> None:
    """Run the connection pragmas on every new DBAPI connection.

    WAL lets the management interface read while the worker writes.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute(f"PRAGMA busy_timeout = {busy_ms}")
        finally:
            cursor.close()


def get_engine(sqlite_path: str, *, busy_timeout: float = 30.0) -> Engine:
    """Create an engine for the SQLite file at *sqlite_path*, creating its directory."""

    if sqlite_path != MEMORY:
        Path(sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{sqlite_path}",
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )
    if sqlite_path != MEMORY:
        _install_pragmas(engine, int(busy_timeout * 1000))
    return engine


def make_session(engine: Engine) -> sessionmaker[Session]:
    # Rows handed across loop boundaries stay readable after commit.
    return sessionmaker(engine, expire_on_commit=False)


def init_db_safe(engine: Engine) -> list[str]:
    """Create missing tables only; returns the names of the tables created."""

    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(engine, checkfirst=True)
    created = [name for name in Base.metadata.tables if name not in existing]
    if created:
        LOGGER.info("Created tables: %s", ", ".join(sorted(created)))
    return created
