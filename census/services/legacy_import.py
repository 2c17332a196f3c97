"""
One-off import of the old single-blob ``legacy_people`` table.

Earlier releases stored the whole population as one JSON list in
``legacy_people.serialized_people``. This module reads that blob and saves
every record into ``people``. The legacy table is only read, never written.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from census.core.errors import ErrorType, StorageError
from census.domain.person import Person
from census.repositories.base import execute_query
from census.services.database_service import DatabaseService

logger = logging.getLogger(__name__)

LEGACY_TABLE = "legacy_people"
SELECT_BLOB_SQL = f"SELECT serialized_people FROM {LEGACY_TABLE} ORDER BY id LIMIT 1"


def legacy_record_to_person(record: Mapping[str, Any]) -> Person:
    """Convert one ``{id, name, networth, age, birthYear}`` record."""
    first_name, _, last_name = str(record.get("name") or "").strip().partition(" ")
    attributes: dict[str, Any] = {}
    if record.get("networth") is not None:
        attributes["networth"] = float(record["networth"])
    if record.get("birthYear") is not None:
        attributes["birth_year"] = int(record["birthYear"])
    return Person(
        id=int(record["id"]),
        first_name=first_name,
        last_name=last_name.strip(),
        age=int(record.get("age") or 0),
        attributes=attributes,
    )


def parse_legacy_blob(raw: str | None) -> list[Person]:
    if not raw:
        return []
    try:
        records = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(f"Legacy people blob is not valid JSON: {exc}", ErrorType.DATA_ACCESS_FAILED) from exc
    if not isinstance(records, list):
        raise StorageError("Legacy people blob is not a JSON list", ErrorType.DATA_ACCESS_FAILED)

    persons: list[Person] = []
    for record in records:
        try:
            persons.append(legacy_record_to_person(record))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping unreadable legacy record %r: %s", record, exc)
    return persons


def _has_legacy_table(service: DatabaseService) -> bool:
    try:
        with service.connection_manager.get_connection() as conn:
            return inspect(conn).has_table(LEGACY_TABLE)
    except SQLAlchemyError as exc:
        raise StorageError(
            f"Failed to inspect {LEGACY_TABLE}: {exc}", ErrorType.QUERY_EXECUTION_FAILED
        ) from exc


def read_legacy_people(service: DatabaseService) -> list[Person]:
    if not _has_legacy_table(service):
        logger.info("No %s table found", LEGACY_TABLE)
        return []
    blobs: Iterable[str | None] = execute_query(
        service.connection_manager, SELECT_BLOB_SQL, None, lambda row: row["serialized_people"]
    )
    return next((parse_legacy_blob(blob) for blob in blobs), [])


def import_legacy_people(service: DatabaseService) -> int:
    """Copy the legacy blob into ``people``; returns how many records were saved."""
    persons = read_legacy_people(service)
    if not persons:
        return 0
    service.save_people(persons)
    logger.info("Imported %s people from %s", len(persons), LEGACY_TABLE)
    return len(persons)
