from __future__ import annotations

from dataclasses import replace
import sqlite3

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import OperationalError

from census.core.errors import ErrorType, StorageError
from census.db.connection import ConnectionManager
from census.repositories.base import (
    execute_batch,
    execute_in_transaction,
    execute_insert,
    execute_query,
    execute_update,
    run_batch,
)

CREATE_ITEMS = "CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL UNIQUE)"
INSERT_ITEM = "INSERT INTO items (name) VALUES (:name)"
ALL_NAMES = "SELECT name FROM items ORDER BY id"


def names(manager):
    return execute_query(manager, ALL_NAMES, None, lambda row: row["name"])


@pytest.fixture()
def items(manager):
    execute_update(manager, CREATE_ITEMS)
    return manager


def test_query_maps_every_row(items):
    execute_batch(items, INSERT_ITEM, [{"name": "a"}, {"name": "b"}])
    rows = execute_query(
        items, "SELECT id, name FROM items WHERE name <> :skip ORDER BY id", {"skip": "a"}, dict
    )
    assert rows == [{"id": 2, "name": "b"}]


def test_update_returns_affected_rows(items):
    execute_batch(items, INSERT_ITEM, [{"name": "a"}, {"name": "b"}])
    assert execute_update(items, "UPDATE items SET name = name || '!'") == 2
    assert names(items) == ["a!", "b!"]


def test_insert_returns_generated_key(items):
    first = execute_insert(items, INSERT_ITEM, {"name": "a"}, lambda keys: keys[0])
    second = execute_insert(items, INSERT_ITEM, {"name": "b"}, lambda keys: keys[0])
    assert (first, second) == (1, 2)


@pytest.mark.skipif(sqlite3.sqlite_version_info < (3, 35), reason="RETURNING needs SQLite 3.35")
def test_insert_uses_returning_row(items):
    key = execute_insert(
        items, INSERT_ITEM + " RETURNING id, name", {"name": "a"}, lambda keys: tuple(keys)
    )
    assert key == (1, "a")


def test_insert_accepts_zero_key(items):
    key = execute_insert(
        items, "INSERT INTO items (id, name) VALUES (0, 'a')", None, lambda keys: keys[0]
    )
    assert key == 0
    assert names(items) == ["a"]


@pytest.mark.skipif(sqlite3.sqlite_version_info < (3, 35), reason="RETURNING needs SQLite 3.35")
def test_insert_without_key_fails(items):
    with pytest.raises(StorageError) as excinfo:
        execute_insert(
            items, "UPDATE items SET name = 'x' WHERE id = -1 RETURNING id", None, lambda keys: keys[0]
        )
    assert excinfo.value.error_type is ErrorType.QUERY_EXECUTION_FAILED


def test_batch_reports_per_statement_counts(items):
    execute_batch(items, INSERT_ITEM, [{"name": "a"}, {"name": "b"}, {"name": "c"}])
    counts = execute_batch(
        items, "DELETE FROM items WHERE name = :name", [{"name": "a"}, {"name": "zzz"}, {"name": "c"}]
    )
    assert counts == [1, 0, 1]
    assert names(items) == ["b"]


def test_driver_errors_are_wrapped(manager):
    with pytest.raises(StorageError) as excinfo:
        execute_query(manager, "SELECT * FROM nowhere", None, dict)
    assert excinfo.value.error_type is ErrorType.QUERY_EXECUTION_FAILED
    assert excinfo.value.__cause__ is not None


def test_transaction_commits_on_success(items):
    def _work(conn):
        run_batch(conn, INSERT_ITEM, [{"name": "a"}, {"name": "b"}])
        return "done"

    assert execute_in_transaction(items, _work) == "done"
    assert names(items) == ["a", "b"]


def test_transaction_rolls_back_and_wraps_plain_errors(items):
    def _work(conn):
        conn.execute(text(INSERT_ITEM), {"name": "a"})
        raise ValueError("nope")

    with pytest.raises(StorageError) as excinfo:
        execute_in_transaction(items, _work)
    assert excinfo.value.error_type is ErrorType.TRANSACTION_FAILED
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert names(items) == []


def test_transaction_passes_storage_errors_through(items):
    def _work(conn):
        run_batch(conn, INSERT_ITEM, [{"name": "a"}, {"name": "a"}])

    with pytest.raises(StorageError) as excinfo:
        execute_in_transaction(items, _work)
    assert excinfo.value.error_type is ErrorType.QUERY_EXECUTION_FAILED
    assert names(items) == []


def test_transaction_returns_connection_to_pool(sqlite_config):
    mgr = ConnectionManager(replace(sqlite_config, connection_pool_size=1, connection_timeout=100))
    try:
        execute_update(mgr, CREATE_ITEMS)
        for _ in range(3):
            with pytest.raises(StorageError):
                execute_in_transaction(mgr, lambda conn: 1 / 0)
        assert execute_in_transaction(mgr, lambda conn: run_batch(conn, INSERT_ITEM, [{"name": "x"}])) == [1]
        assert names(mgr) == ["x"]
    finally:
        mgr.close()


def test_transaction_wraps_failed_begin(items, monkeypatch):
    def _refuse(self):
        raise OperationalError("BEGIN", {}, Exception("database is locked"))

    monkeypatch.setattr(Connection, "begin", _refuse)
    with pytest.raises(StorageError) as excinfo:
        execute_in_transaction(items, lambda conn: run_batch(conn, INSERT_ITEM, [{"name": "a"}]))
    assert excinfo.value.error_type is ErrorType.QUERY_EXECUTION_FAILED
    assert isinstance(excinfo.value.__cause__, OperationalError)
    monkeypatch.undo()
    assert names(items) == []
