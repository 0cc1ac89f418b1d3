"""Durable, append-only storage of acquired samples.

One ``motor_data`` table keyed by an auto-assigned id. The store is shared by
every persistence thread the acquisition service starts, so each insert runs
in its own short transaction on a pooled connection.
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from typing import Any, Dict, List

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    Table,
    create_engine,
    func,
    insert as sql_insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from motor_monitor.core.errors import StorageError
from motor_monitor.core.motor.motor_model import Sample

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///motor_data.db"

# Seconds a writer waits for SQLite's file lock before giving up
SQLITE_BUSY_TIMEOUT = 30.0

metadata = MetaData()

motor_data = Table(
    "motor_data",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("timestamp", Integer, nullable=False),
    Column("current_power", Float, nullable=False),
    Column("current_torque", Float, nullable=False),
    Column("current_speed", Float, nullable=False),
    Column("current_heat", Float, nullable=False),
    Column("current_cycles", Float, nullable=False),
)


def _is_memory_url(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite:/"))


def _create_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    connect_args: Dict[str, Any] = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    if _is_memory_url(url):
        # An in-memory database only exists on a single connection
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


class SampleStore:
    """Handle on the ``motor_data`` table, safe to share between threads."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        # A single shared SQLite connection cannot interleave transactions
        self._write_lock = threading.Lock() if isinstance(engine.pool, StaticPool) else None

    @property
    def engine(self) -> Engine:
        return self._engine

    def insert(self, sample: Sample) -> None:
        """Append ``sample`` as one row.

        :raises StorageError: if the row could not be written.
        """

        row = {
            "timestamp": sample.timestamp,
            "current_power": sample.current_power,
            "current_torque": sample.current_torque,
            "current_speed": sample.current_speed,
            "current_heat": sample.current_heat,
            "current_cycles": sample.current_cycles,
        }
        try:
            with self._write_lock or nullcontext():
                with self._engine.begin() as conn:
                    conn.execute(sql_insert(motor_data), row)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert sample at {sample.timestamp}: {exc}") from exc

    def count(self) -> int:
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(select(func.count()).select_from(motor_data)).scalar_one())
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to count samples: {exc}") from exc

    def fetch_all(self) -> List[Sample]:
        """All stored samples in insertion order."""

        stmt = select(
            motor_data.c.timestamp,
            motor_data.c.current_power,
            motor_data.c.current_torque,
            motor_data.c.current_speed,
            motor_data.c.current_heat,
            motor_data.c.current_cycles,
        ).order_by(motor_data.c.id)
        try:
            with self._engine.connect() as conn:
                return [Sample(**row._mapping) for row in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read samples: {exc}") from exc

    def close(self) -> None:
        self._engine.dispose()


def setup(url: str = DEFAULT_DATABASE_URL) -> SampleStore:
    """Open the store at ``url``, creating the table if it does not exist.

    Safe to call repeatedly against the same database: existing rows are left
    untouched.

    :raises StorageError: if the database cannot be opened or the schema
        cannot be created.
    """

    try:
        engine = _create_engine(url)
        metadata.create_all(engine, checkfirst=True)
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to set up database {url}: {exc}") from exc
    logger.info("Sample store ready at %s", engine.url.render_as_string(hide_password=True))
    return SampleStore(engine)


def insert(store: SampleStore, sample: Sample) -> None:
    """Module-level shorthand for :meth:`SampleStore.insert`."""

    store.insert(sample)


__all__ = [
    "DEFAULT_DATABASE_URL",
    "SampleStore",
    "metadata",
    "motor_data",
    "setup",
    "insert",
]
