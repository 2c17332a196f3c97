"""Domain objects that do not depend on storage."""

from .person import Attributes, AttributeValue, Person

__all__ = ["Attributes", "AttributeValue", "Person"]
