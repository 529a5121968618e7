"""Async SQLAlchemy engine construction and schema migration."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from intelliindex.config import DatabaseConfig
from intelliindex.errors import BackendError
from intelliindex.models.tables import TABLES

PG_UNIQUE_VIOLATION = "23505"
SQLITE_UNIQUE_ERRORS = {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}
MYSQL_DUPLICATE_ENTRY = 1062


def is_unique_violation(error: IntegrityError) -> bool:
    """Classify a unique-constraint failure from the driver error code."""
    # Async drivers may wrap the DBAPI exception; the original is its __cause__.
    for orig in (error.orig, getattr(error.orig, "__cause__", None)):
        if orig is None:
            continue
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if code == PG_UNIQUE_VIOLATION:
            return True
        if getattr(orig, "sqlite_errorname", None) in SQLITE_UNIQUE_ERRORS:
            return True
        args = getattr(orig, "args", ())
        if args and args[0] == MYSQL_DUPLICATE_ENTRY:
            return True
    return False


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise BackendError(f"failed to {action}: {e}") from e


def create_async_engine_from_config(cfg: DatabaseConfig) -> AsyncEngine:
    """Create an async engine for the configured database.

    Connection pool limits only apply to server databases; SQLite uses the
    driver's default pool.
    """
    kwargs: dict[str, Any] = {"echo": cfg.log_level.lower() == "info"}
    if not cfg.is_sqlite:
        kwargs.update(
            pool_size=cfg.max_idle_conns,
            max_overflow=max(cfg.max_open_conns - cfg.max_idle_conns, 0),
            pool_recycle=int(cfg.conn_max_life),
            pool_pre_ping=True,
        )
    return create_async_engine(cfg.url(), **kwargs)


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        # Every pooled connection to :memory: is a separate database.
        return create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
        )
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}")


async def ping_database(engine: AsyncEngine) -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True


class MigrationHandler:
    """Creates and resets the relational schema."""

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def run_migrations(self) -> None:
        """Create missing tables. Safe to run repeatedly.

        A failed attempt is logged and retried once before giving up.

        Raises:
            BackendError: If the second attempt also fails.
        """
        self._logger.info("migrations_started")
        try:
            await self._create_all()
        except SQLAlchemyError as e:
            self._logger.warning("migrations_failed_retrying", error=str(e))
            try:
                await self._create_all()
            except SQLAlchemyError as retry_error:
                raise BackendError(f"failed to run migrations: {retry_error}") from retry_error
        self._logger.info("migrations_completed")

    async def reset_database(self) -> None:
        """Drop every known table and recreate the schema."""
        self._logger.warning("database_reset_started")
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.drop_all, tables=[t.__table__ for t in TABLES])
        except SQLAlchemyError as e:
            raise BackendError(f"failed to drop tables: {e}") from e
        await self.run_migrations()

    async def _create_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=[t.__table__ for t in TABLES])
