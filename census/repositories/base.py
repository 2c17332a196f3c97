"""
Generic statement helpers shared by the repositories.

Each helper borrows one pooled connection, runs a SQL text statement with
named bind parameters, and hands the connection back on every exit path.
Entity repositories supply the SQL and a row mapper; nothing here knows about
a particular table.

Driver failures are re-raised as StorageError(QUERY_EXECUTION_FAILED) with the
original error chained. StorageError raised below this layer (a failed
checkout, for instance) is never wrapped a second time.
"""
from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.exc import SQLAlchemyError

from census.core.errors import ErrorType, StorageError
from census.db.connection import ConnectionManager

logger = logging.getLogger(__name__)

R = TypeVar("R")

Params = Optional[Mapping[str, Any]]
RowMapper = Callable[[RowMapping], R]
KeyMapper = Callable[[Sequence[Any]], R]


@contextmanager
def _statement_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to {action}: {exc}", ErrorType.QUERY_EXECUTION_FAILED) from exc


def run_query(conn: Connection, sql: str, params: Params, row_mapper: RowMapper[R]) -> list[R]:
    """Run a query on an already borrowed connection."""
    with _statement_errors("execute query"):
        result = conn.execute(text(sql), dict(params or {}))
        return [row_mapper(row) for row in result.mappings()]


def run_batch(conn: Connection, sql: str, param_sets: Iterable[Mapping[str, Any]]) -> list[int]:
    """Run one statement per parameter set on a borrowed connection."""
    statement = text(sql)
    with _statement_errors("execute batch update"):
        return [conn.execute(statement, dict(params)).rowcount for params in param_sets]


def execute_query(
    manager: ConnectionManager,
    sql: str,
    params: Params,
    row_mapper: RowMapper[R],
) -> list[R]:
    with manager.get_connection() as conn:
        return run_query(conn, sql, params, row_mapper)


def execute_update(manager: ConnectionManager, sql: str, params: Params = None) -> int:
    """Run an INSERT/UPDATE/DELETE and commit it; returns the affected-row count."""
    with _statement_errors("execute update"):
        with manager.get_connection() as conn:
            affected = conn.execute(text(sql), dict(params or {})).rowcount
            conn.commit()
    logger.debug("Update affected %s row(s)", affected)
    return affected


def execute_insert(
    manager: ConnectionManager,
    sql: str,
    params: Params,
    key_mapper: KeyMapper[R],
) -> R:
    """Run an INSERT and map the generated key.

    Statements with a RETURNING clause yield their first row; otherwise the
    driver's ``lastrowid`` is used.
    """
    with _statement_errors("execute insert"):
        with manager.get_connection() as conn:
            result = conn.execute(text(sql), dict(params or {}))
            if result.returns_rows:
                row = result.first()
                keys = tuple(row) if row is not None else None
            else:
                keys = (result.lastrowid,) if result.lastrowid is not None else None
            if keys is None:
                conn.rollback()
                raise StorageError(
                    "No generated keys returned from insert", ErrorType.QUERY_EXECUTION_FAILED
                )
            conn.commit()
    return key_mapper(keys)


def execute_batch(
    manager: ConnectionManager,
    sql: str,
    param_sets: Iterable[Mapping[str, Any]],
) -> list[int]:
    """Run the statement once per parameter set and commit them together."""
    with manager.get_connection() as conn:
        counts = run_batch(conn, sql, param_sets)
        with _statement_errors("commit batch update"):
            conn.commit()
    return counts


def _rollback(conn: Connection, error: BaseException) -> None:
    try:
        conn.rollback()
        logger.warning("Transaction rolled back due to error: %s", error)
    except SQLAlchemyError:
        logger.exception("Failed to roll back transaction")


def execute_in_transaction(manager: ConnectionManager, operation: Callable[[Connection], R]) -> R:
    """Run ``operation`` on one connection inside a single transaction.

    Commits when ``operation`` returns, rolls back when anything raises. The
    connection always goes back to the pool, which resets it to its original
    commit mode.
    """
    with manager.get_connection() as conn:
        with _statement_errors("begin transaction"):
            conn.begin()
        try:
            result = operation(conn)
            conn.commit()
        except Exception as exc:
            _rollback(conn, exc)
            if isinstance(exc, StorageError):
                raise
            raise StorageError(f"Transaction failed: {exc}", ErrorType.TRANSACTION_FAILED) from exc
        return result
