"""Person entity and its open-ended attribute bag."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Dict, Mapping, Optional, Union

AttributeValue = Union[str, int, float, bool, None]
Attributes = Dict[str, AttributeValue]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def validate_attributes(values: Mapping[str, Any] | None) -> Attributes:
    """Return a copy of ``values`` restricted to string keys and scalar values."""
    if values is None:
        return {}
    result: Attributes = {}
    for key, value in values.items():
        if not isinstance(key, str):
            raise ValueError(f"attribute names must be strings, got {key!r}")
        if not isinstance(value, _SCALAR_TYPES):
            raise ValueError(f"attribute {key!r} has unsupported type {type(value).__name__}")
        result[key] = value
    return result


def encode_attributes(values: Mapping[str, AttributeValue]) -> str:
    return json.dumps(validate_attributes(values), ensure_ascii=False, sort_keys=True)


def decode_attributes(raw: Optional[str]) -> Attributes:
    """Decode the stored text; a NULL column or JSON ``null`` is an empty bag."""
    if raw is None or not raw.strip():
        return {}
    data = json.loads(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("attribute data must be a JSON object")
    return validate_attributes(data)


@dataclass(eq=False)
class Person:
    """A person record. Identity is the caller-assigned ``id`` alone."""

    id: int
    first_name: str
    last_name: str = ""
    age: int = 0
    email: Optional[str] = None
    attributes: Attributes = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 0:
            raise ValueError("id must be a non-negative integer")
        if not isinstance(self.first_name, str) or not self.first_name.strip():
            raise ValueError("first_name cannot be empty")
        if self.last_name is None:
            self.last_name = ""
        if isinstance(self.age, bool) or not isinstance(self.age, int) or self.age < 0:
            raise ValueError("age must be a non-negative integer")
        self.attributes = validate_attributes(self.attributes)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Person.id cannot be changed")
        super().__setattr__(name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Person):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
