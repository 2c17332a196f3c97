"""
Database configuration for census.

A DatabaseConfig is read once at startup, from the first JSON file found among
the candidate paths or, failing that, from DB_* environment variables. It is
never mutated afterwards; the connection manager and the services receive it
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping

from sqlalchemy.engine import URL

from census.core.errors import ErrorType, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5432
DEFAULT_POOL_SIZE = 10
DEFAULT_CONNECTION_TIMEOUT_MS = 30_000
DEFAULT_IDLE_TIMEOUT_MS = 600_000

CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("config") / "database.json",
    Path(__file__).resolve().parents[1] / "resources" / "database.json",
)

REQUIRED_ENV_VARS = ("DB_TYPE", "DB_HOST", "DB_NAME", "DB_USERNAME", "DB_PASSWORD")


def _config_error(message: str) -> StorageError:
    return StorageError(message, ErrorType.CONFIGURATION_ERROR)


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters. Timeouts are in milliseconds."""

    db_type: str
    host_name: str
    db_name: str
    username: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    connection_pool_size: int = DEFAULT_POOL_SIZE
    connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT_MS
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT_MS

    def __post_init__(self) -> None:
        for name in ("db_type", "host_name", "db_name", "username", "password"):
            if not isinstance(getattr(self, name), str):
                raise _config_error(f"{name} must be a string")
        if not self.db_type.strip():
            raise _config_error("db_type cannot be empty")
        for name in ("port", "connection_pool_size", "connection_timeout", "idle_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise _config_error(f"{name} must be an integer")
        if self.port <= 0:
            raise _config_error("port must be a positive number")
        if self.connection_pool_size <= 0:
            raise _config_error("connection_pool_size must be a positive number")
        if self.connection_timeout < 0 or self.idle_timeout < 0:
            raise _config_error("timeouts cannot be negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DatabaseConfig":
        """Build a config from the camelCase keys used by config/database.json."""
        if not isinstance(data, Mapping):
            raise _config_error("configuration must be a JSON object")

        def _opt(key: str, default: int) -> int:
            value = data.get(key)
            return default if value is None else value

        return cls(
            db_type=data.get("dbType"),
            host_name=data.get("hostName"),
            db_name=data.get("dbName"),
            username=data.get("username"),
            password=data.get("password"),
            port=_opt("port", DEFAULT_PORT),
            connection_pool_size=_opt("connectionPoolSize", DEFAULT_POOL_SIZE),
            connection_timeout=_opt("connectionTimeout", DEFAULT_CONNECTION_TIMEOUT_MS),
            idle_timeout=_opt("idleTimeout", DEFAULT_IDLE_TIMEOUT_MS),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.split("+", 1)[0].lower() == "sqlite"

    @property
    def url(self) -> URL:
        if self.is_sqlite:
            return URL.create(self.db_type, database=self.db_name)
        return URL.create(
            self.db_type,
            username=self.username or None,
            password=self.password or None,
            host=self.host_name,
            port=self.port,
            database=self.db_name,
        )


def load_from_file(path: Path) -> DatabaseConfig | None:
    """Return the config stored at ``path`` or None when it is missing or unusable."""
    if not path.is_file():
        logger.debug("Configuration file not found: %s", path)
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        logger.warning("Error reading configuration file %s: %s", path, exc)
        return None
    except json.JSONDecodeError as exc:
        logger.warning("Invalid JSON in configuration file %s: %s", path, exc)
        return None
    try:
        return DatabaseConfig.from_mapping(data)
    except StorageError as exc:
        logger.warning("Invalid configuration in %s: %s", path, exc.message)
        return None


def load_from_environment(environ: Mapping[str, str] | None = None) -> DatabaseConfig | None:
    env = os.environ if environ is None else environ

    def _int(name: str, default: int) -> int:
        value = env.get(name)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid integer for %s: %r, using %s", name, value, default)
            return default

    if any(env.get(name) is None for name in REQUIRED_ENV_VARS):
        logger.debug("Not all required environment variables are set")
        return None

    try:
        return DatabaseConfig(
            db_type=env["DB_TYPE"],
            host_name=env["DB_HOST"],
            db_name=env["DB_NAME"],
            username=env["DB_USERNAME"],
            password=env["DB_PASSWORD"],
            port=_int("DB_PORT", DEFAULT_PORT),
            connection_pool_size=_int("DB_POOL_SIZE", DEFAULT_POOL_SIZE),
            connection_timeout=_int("DB_CONN_TIMEOUT", DEFAULT_CONNECTION_TIMEOUT_MS),
            idle_timeout=_int("DB_IDLE_TIMEOUT", DEFAULT_IDLE_TIMEOUT_MS),
        )
    except StorageError as exc:
        logger.warning("Invalid configuration in environment: %s", exc.message)
        return None


def load_config(
    paths: Iterable[Path | str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> DatabaseConfig:
    """Load the first usable configuration: candidate files, then the environment."""
    for candidate in CONFIG_LOCATIONS if paths is None else paths:
        path = Path(candidate)
        config = load_from_file(path)
        if config is not None:
            logger.info("Loaded database configuration from %s", path)
            return config

    config = load_from_environment(environ)
    if config is not None:
        logger.info("Loaded database configuration from environment variables")
        return config

    raise _config_error("Failed to load database configuration from any source")
