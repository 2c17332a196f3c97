"""Interactive command loop for managing people."""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, TextIO

from census.domain.person import AttributeValue, Person
from census.services.database_service import DatabaseService

logger = logging.getLogger(__name__)

USAGE = """Commands:
  -add <first> [last],<age>[,<email>][,key=value...]
  -remove <id|name>
  -list
  -find <text>
  -save
  -help
  -exit"""


class CommandError(ValueError):
    """Raised when a command line cannot be parsed."""


def parse_attribute_value(raw: str) -> AttributeValue:
    value = raw.strip()
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def parse_add_arguments(body: str, person_id: int) -> Person:
    parts = [part.strip() for part in body.split(",")]
    if len(parts) < 2 or not parts[0]:
        raise CommandError("Usage: -add <first> [last],<age>[,<email>][,key=value...]")
    first_name, _, last_name = parts[0].partition(" ")
    try:
        age = int(parts[1])
    except ValueError:
        raise CommandError(f"Invalid age: {parts[1]!r}") from None

    email: Optional[str] = None
    attributes: dict[str, AttributeValue] = {}
    for extra in parts[2:]:
        if not extra:
            continue
        if "=" in extra:
            key, _, raw = extra.partition("=")
            if not key.strip():
                raise CommandError(f"Invalid attribute: {extra!r}")
            attributes[key.strip()] = parse_attribute_value(raw)
        elif email is None:
            email = extra
        else:
            raise CommandError(f"Unexpected value: {extra!r}")

    return Person(
        id=person_id,
        first_name=first_name,
        last_name=last_name.strip(),
        age=age,
        email=email,
        attributes=attributes,
    )


def format_person(person: Person) -> str:
    lines = [
        "-------------------",
        f"Name: {person.full_name}",
        f"Id-Number: {person.id}",
        f"Age: {person.age}",
    ]
    if person.email:
        lines.append(f"Email: {person.email}")
    for key in sorted(person.attributes):
        lines.append(f"{key}: {person.attributes[key]}")
    lines.append("-------------------")
    return "\n".join(lines)


class PersonManager:
    """Reads commands line by line and applies them through the service.

    The people known at startup are cached; ``-add`` and ``-remove`` keep the
    cache in step with the database and ``-save`` writes the cache back in a
    single transaction.
    """

    def __init__(
        self,
        service: DatabaseService,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self.service = service
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.people: list[Person] = service.get_all_people()
        self._commands: dict[str, Callable[[str], None]] = {
            "-add": self.add,
            "-remove": self.remove,
            "-list": self.list_people,
            "-find": self.find,
            "-save": self.save,
            "-help": self.help,
        }

    def _print(self, message: str = "") -> None:
        self.stdout.write(message + "\n")
        self.stdout.flush()

    def next_id(self) -> int:
        return max((person.id for person in self.people), default=0) + 1

    def run(self) -> None:
        self._print(USAGE)
        while True:
            self.stdout.write("> ")
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                if not self.dispatch(line):
                    break
            except Exception as exc:
                logger.debug("Command %r failed", line, exc_info=True)
                self._print(f"Error: {exc}")

    def dispatch(self, line: str) -> bool:
        """Run one command; returns False when the loop should stop."""
        command, _, argument = line.partition(" ")
        command = command.lower()
        if command == "-exit":
            return False
        handler = self._commands.get(command)
        if handler is None:
            self._print("Invalid command. Type -help for the list of commands.")
            return True
        handler(argument.strip())
        return True

    def add(self, argument: str) -> None:
        person = parse_add_arguments(argument, self.next_id())
        self.service.save_person(person)
        self.people.append(person)
        self._print(f"Added {person.full_name} with id {person.id}.")

    def remove(self, argument: str) -> None:
        if not argument:
            raise CommandError("Usage: -remove <id|name>")
        if argument.isdigit():
            target = next((p for p in self.people if p.id == int(argument)), None)
            person_id = int(argument)
        else:
            wanted = argument.lower()
            target = next((p for p in self.people if p.full_name.lower() == wanted), None)
            if target is None:
                self._print(f"No person named {argument}.")
                return
            person_id = target.id

        if self.service.delete_person(person_id):
            if target is not None:
                self.people.remove(target)
            self._print(f"Removed {target.full_name if target else person_id} from the population.")
        else:
            self._print(f"No person with id {person_id}.")

    def list_people(self, _argument: str = "") -> None:
        if not self.people:
            self._print("No people stored.")
            return
        for person in self.people:
            self._print(format_person(person))

    def find(self, argument: str) -> None:
        if not argument:
            raise CommandError("Usage: -find <text>")
        matches = self.service.find_people_by_name(argument)
        if not matches:
            self._print(f"Nobody matches {argument!r}.")
            return
        for person in matches:
            self._print(format_person(person))

    def save(self, _argument: str = "") -> None:
        self.service.save_people(self.people)
        self._print(f"Saved {len(self.people)} people.")

    def help(self, _argument: str = "") -> None:
        self._print(USAGE)
