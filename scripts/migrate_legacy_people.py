"""One-off migration: legacy_people JSON blob -> people rows."""
from __future__ import annotations

from pathlib import Path
import sys

# Make the census package importable when run directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from census.services.database_service import DatabaseService
from census.services.legacy_import import import_legacy_people


def migrate() -> int:
    with DatabaseService() as service:
        return import_legacy_people(service)


if __name__ == "__main__":
    count = migrate()
    print(f"Migrated {count} people from legacy_people.")
