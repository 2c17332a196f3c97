"""Command-line entry point: python -m census."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from census.core.config import CONFIG_LOCATIONS, load_config
from census.core.errors import StorageError
from census.services.database_service import DatabaseService
from census.services.legacy_import import import_legacy_people
from census.services.person_manager import PersonManager

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="census", description="Manage person records")
    ap.add_argument("--config", help="JSON config file (default: config/database.json)")
    ap.add_argument(
        "--log-level",
        default=os.getenv("CENSUS_LOG_LEVEL", "INFO"),
        help="Logging level (default: $CENSUS_LOG_LEVEL or INFO)",
    )
    ap.add_argument(
        "--import-legacy",
        action="store_true",
        help="Copy the legacy_people blob into the people table and exit",
    )
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    paths = [args.config] if args.config else list(CONFIG_LOCATIONS)
    try:
        service = DatabaseService(load_config(paths))
    except StorageError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1

    with service:
        if args.import_legacy:
            try:
                count = import_legacy_people(service)
            except StorageError as exc:
                sys.stderr.write(f"Error: {exc}\n")
                return 1
            print(f"Imported {count} people from legacy_people.")
            return 0
        PersonManager(service).run()
    return 0
