"""Database helpers (connection manager and schema export)."""

from .connection import ConnectionManager
from .models import metadata, people

__all__ = ["ConnectionManager", "metadata", "people"]
