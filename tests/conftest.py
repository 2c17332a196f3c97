"""Shared fixtures: every test runs against its own temporary SQLite file."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the census package importable when running the tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from census.core.config import DatabaseConfig  # noqa: E402
from census.db.connection import ConnectionManager  # noqa: E402
from census.services.database_service import DatabaseService  # noqa: E402


@pytest.fixture()
def sqlite_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig(
        db_type="sqlite",
        host_name="localhost",
        db_name=str(tmp_path / "census.db"),
        username="",
        password="",
        connection_pool_size=3,
        connection_timeout=1000,
    )


@pytest.fixture()
def manager(sqlite_config):
    mgr = ConnectionManager(sqlite_config)
    yield mgr
    mgr.close()


@pytest.fixture()
def service(manager):
    svc = DatabaseService(connection_manager=manager)
    yield svc
    svc.close()
