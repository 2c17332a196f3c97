"""Table definitions for the person store."""
from __future__ import annotations

from sqlalchemy import BigInteger, Column, Integer, MetaData, String, Table, Text

metadata = MetaData()

# ``id`` is the storage row key; ``person_id`` is the caller-assigned business id.
people = Table(
    "people",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("person_id", BigInteger, nullable=False, unique=True, index=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255)),
    Column("age", Integer),
    Column("email", String(255)),
    Column("additional_data", Text),
)
