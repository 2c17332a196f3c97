"""Person records kept in a relational database."""

__version__ = "0.1.0"
