"""SQL text and row mapping for the ``people`` table."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.exc import SQLAlchemyError

from census.core.errors import ErrorType, StorageError
from census.db.connection import ConnectionManager
from census.db.models import metadata, people
from census.domain.person import Person, decode_attributes, encode_attributes
from census.repositories.base import (
    execute_in_transaction,
    execute_insert,
    execute_query,
    execute_update,
    run_batch,
    run_query,
)

logger = logging.getLogger(__name__)

_COLUMNS = "person_id, first_name, last_name, age, email, additional_data"

FIND_BY_ID_SQL = f"SELECT {_COLUMNS} FROM people WHERE person_id = :person_id"
FIND_ALL_SQL = f"SELECT {_COLUMNS} FROM people ORDER BY id"
FIND_BY_NAME_SQL = (
    f"SELECT {_COLUMNS} FROM people "
    "WHERE first_name LIKE :pattern ESCAPE '!' OR last_name LIKE :pattern ESCAPE '!' "
    "ORDER BY id"
)
COUNT_BY_ID_SQL = "SELECT COUNT(*) AS total FROM people WHERE person_id = :person_id"
INSERT_SQL = (
    "INSERT INTO people (person_id, first_name, last_name, age, email, additional_data) "
    "VALUES (:person_id, :first_name, :last_name, :age, :email, :additional_data)"
)
INSERT_RETURNING_SQL = INSERT_SQL + " RETURNING id"
UPDATE_SQL = (
    "UPDATE people SET first_name = :first_name, last_name = :last_name, age = :age, "
    "email = :email, additional_data = :additional_data WHERE person_id = :person_id"
)
DELETE_SQL = "DELETE FROM people WHERE person_id = :person_id"
DELETE_ALL_SQL = "DELETE FROM people"


def like_pattern(fragment: str) -> str:
    """Substring LIKE pattern in which ``%``, ``_`` and ``!`` match literally."""
    escaped = fragment.replace("!", "!!").replace("%", "!%").replace("_", "!_")
    return f"%{escaped}%"


def _person_params(person: Person) -> dict[str, Any]:
    return {
        "person_id": person.id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "age": person.age,
        "email": person.email,
        "additional_data": encode_attributes(person.attributes),
    }


def _row_to_person(row: RowMapping) -> Person:
    try:
        return Person(
            id=int(row["person_id"]),
            first_name=row["first_name"],
            last_name=row["last_name"] or "",
            age=row["age"] or 0,
            email=row["email"],
            attributes=decode_attributes(row["additional_data"]),
        )
    except ValueError as exc:
        raise StorageError(
            f"Unreadable row for person {row['person_id']}: {exc}", ErrorType.DATA_ACCESS_FAILED
        ) from exc


def _row_count(row: RowMapping) -> int:
    return int(row["total"])


class PersonRepository:
    """CRUD and name search over ``people``, keyed by the business id."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self.connection_manager = connection_manager
        # RETURNING where the dialect has it, the driver lastrowid otherwise
        self.insert_sql = (
            INSERT_RETURNING_SQL
            if connection_manager.engine.dialect.insert_returning
            else INSERT_SQL
        )

    def initialize(self) -> None:
        """Create the table and its index unless they already exist."""
        try:
            with self.connection_manager.get_connection() as conn:
                metadata.create_all(conn, tables=[people], checkfirst=True)
                conn.commit()
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to initialize people table: {exc}", ErrorType.QUERY_EXECUTION_FAILED
            ) from exc
        logger.info("People table initialized")

    def find_by_id(self, person_id: int) -> Optional[Person]:
        rows = execute_query(
            self.connection_manager, FIND_BY_ID_SQL, {"person_id": person_id}, _row_to_person
        )
        return rows[0] if rows else None

    def find_all(self) -> list[Person]:
        return execute_query(self.connection_manager, FIND_ALL_SQL, None, _row_to_person)

    def exists_by_id(self, person_id: int) -> bool:
        counts = execute_query(
            self.connection_manager, COUNT_BY_ID_SQL, {"person_id": person_id}, _row_count
        )
        return bool(counts) and counts[0] > 0

    def save(self, person: Person) -> Person:
        """Update the row for ``person.id`` if there is one, insert it otherwise."""
        params = _person_params(person)
        if self.exists_by_id(person.id):
            execute_update(self.connection_manager, UPDATE_SQL, params)
            logger.debug("Updated person %s", person.id)
        else:
            row_key = execute_insert(
                self.connection_manager, self.insert_sql, params, lambda keys: keys[0]
            )
            logger.debug("Inserted person %s as row %s", person.id, row_key)
        return person

    def delete_by_id(self, person_id: int) -> bool:
        return execute_update(self.connection_manager, DELETE_SQL, {"person_id": person_id}) > 0

    def find_by_name(self, fragment: str) -> list[Person]:
        """People whose first or last name contains ``fragment`` (case-sensitive)."""
        return execute_query(
            self.connection_manager,
            FIND_BY_NAME_SQL,
            {"pattern": like_pattern(fragment)},
            _row_to_person,
        )

    def save_all(self, persons: Iterable[Person]) -> None:
        """Save every person in one transaction: either all rows land or none do."""
        batch = list(persons)
        if not batch:
            return

        def _save(conn: Connection) -> tuple[int, int]:
            inserts: list[dict[str, Any]] = []
            updates: list[dict[str, Any]] = []
            pending: set[int] = set()
            for person in batch:
                params = _person_params(person)
                if person.id in pending or self._exists(conn, person.id):
                    updates.append(params)
                else:
                    inserts.append(params)
                    pending.add(person.id)
            run_batch(conn, INSERT_SQL, inserts)
            run_batch(conn, UPDATE_SQL, updates)
            return len(inserts), len(updates)

        inserted, updated = execute_in_transaction(self.connection_manager, _save)
        logger.info("Saved %s people (%s inserted, %s updated)", len(batch), inserted, updated)

    def delete_all(self) -> int:
        deleted = execute_update(self.connection_manager, DELETE_ALL_SQL)
        logger.info("Deleted %s people", deleted)
        return deleted

    @staticmethod
    def _exists(conn: Connection, person_id: int) -> bool:
        counts = run_query(conn, COUNT_BY_ID_SQL, {"person_id": person_id}, _row_count)
        return bool(counts) and counts[0] > 0
