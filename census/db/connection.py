"""Pooled engine wrapper handing out SQLAlchemy connections."""
from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from census.core.config import DatabaseConfig
from census.core.errors import ErrorType, StorageError

logger = logging.getLogger(__name__)

MINIMUM_IDLE = 2
PROBE_QUERY = "SELECT 1"


def _sqlite_case_sensitive_like(dbapi_conn, _record) -> None:
    # name search matches case-sensitively on every backend
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA case_sensitive_like = ON")
    cursor.close()


class ConnectionManager:
    """Owns the connection pool for one database.

    The pool holds at most ``connection_pool_size`` connections; a checkout
    waits up to ``connection_timeout`` ms before failing. ``idle_timeout`` is
    applied as ``pool_recycle``: a connection older than that many ms is
    replaced at its next checkout, whether or not it sat idle. Every checkout is
    pre-pinged so a dropped connection is replaced instead of handed out.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._closed = False
        self._engine = self._create_engine(config)
        self._validate()
        logger.info(
            "Database connection pool initialized (%s, size=%s)",
            config.db_type,
            config.connection_pool_size,
        )

    @staticmethod
    def _create_engine(config: DatabaseConfig) -> Engine:
        recycle = config.idle_timeout / 1000 if config.idle_timeout > 0 else -1
        try:
            engine = create_engine(
                config.url,
                poolclass=QueuePool,
                pool_size=config.connection_pool_size,
                max_overflow=0,
                pool_timeout=config.connection_timeout / 1000,
                pool_recycle=recycle,
                pool_pre_ping=True,
                future=True,
            )
        except (SQLAlchemyError, ImportError) as exc:
            raise StorageError(
                f"Failed to create connection pool: {exc}", ErrorType.CONNECTION_FAILED
            ) from exc
        if config.is_sqlite:
            event.listen(engine, "connect", _sqlite_case_sensitive_like)
        return engine

    def _validate(self) -> None:
        """Fill the minimum-idle floor and run the liveness probe once."""
        warmed: list[Connection] = []
        try:
            try:
                for _ in range(min(MINIMUM_IDLE, self.config.connection_pool_size)):
                    warmed.append(self._engine.connect())
                warmed[0].execute(text(PROBE_QUERY)).scalar_one()
            finally:
                for conn in warmed:
                    conn.close()
        except SQLAlchemyError as exc:
            self._engine.dispose()
            raise StorageError(
                f"Failed to validate database connection: {exc}", ErrorType.CONNECTION_FAILED
            ) from exc

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._closed

    def _checkout(self) -> Connection:
        if self._closed:
            raise StorageError("Connection pool is closed", ErrorType.CONNECTION_FAILED)
        try:
            return self._engine.connect()
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to get database connection: {exc}", ErrorType.CONNECTION_FAILED
            ) from exc

    @contextmanager
    def get_connection(self) -> Iterator[Connection]:
        """Borrow one connection; it goes back to the pool on every exit path.

        Usage:
            with manager.get_connection() as conn:
                conn.execute(text("SELECT 1"))
        """
        conn = self._checkout()
        try:
            yield conn
        finally:
            conn.close()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.info("Shutting down database connection pool")
        self._engine.dispose()

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
