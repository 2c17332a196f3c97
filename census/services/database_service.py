"""Person-oriented facade over the connection manager and repository."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from census.core.config import DatabaseConfig, load_config
from census.db.connection import ConnectionManager
from census.domain.person import Person
from census.repositories.person_repository import PersonRepository

logger = logging.getLogger(__name__)


class DatabaseService:
    """Owns one connection pool and the repositories built on it."""

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        *,
        connection_manager: Optional[ConnectionManager] = None,
    ) -> None:
        logger.info("Initializing database service")
        if connection_manager is None:
            connection_manager = ConnectionManager(config or load_config())
        self.connection_manager = connection_manager
        self.people = PersonRepository(connection_manager)
        self.people.initialize()

    def get_person(self, person_id: int) -> Optional[Person]:
        return self.people.find_by_id(person_id)

    def get_all_people(self) -> list[Person]:
        return self.people.find_all()

    def save_person(self, person: Person) -> Person:
        return self.people.save(person)

    def save_people(self, persons: Iterable[Person]) -> None:
        self.people.save_all(persons)

    def delete_person(self, person_id: int) -> bool:
        return self.people.delete_by_id(person_id)

    def delete_all_people(self) -> int:
        return self.people.delete_all()

    def find_people_by_name(self, fragment: str) -> list[Person]:
        return self.people.find_by_name(fragment)

    def close(self) -> None:
        logger.info("Shutting down database service")
        self.connection_manager.close()

    def __enter__(self) -> "DatabaseService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
