"""Event table schema.

Defines the append-only event table used by CHRONICLE to persist domain
events. Each row is a single event with a global insertion sequence, the
aggregate identifier, and the event's position within that aggregate's
stream. The table name is configurable, so tables are built on demand by
:func:`build_event_table` rather than declared once at import time.

Constraints (enforced here):

| Constraint                      | Purpose                                |
|---------------------------------|----------------------------------------|
| PRIMARY KEY(id)                 | global insertion order across streams  |
| UNIQUE(identifier, position)    | per-stream optimistic concurrency      |
| CHECK(position >= 0)            | positions start at 0                   |

Column layout must stay stable for interoperability with existing data:
``identifier`` is ``String(36)`` in text mode and a 16-byte binary column in
binary mode; ``recorded_at`` is a sortable ISO-8601 string, not a native
temporal column.
"""

from __future__ import annotations

from sqlalchemy import (
    BINARY,
    BigInteger,
    CheckConstraint,
    Column,
    Identity,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.types import TypeEngine

__all__ = [
    "DEFAULT_TABLE_NAME",
    "IDENTIFIER_TEXT_LENGTH",
    "IDENTIFIER_BINARY_LENGTH",
    "build_event_table",
    "identifier_type",
]

DEFAULT_TABLE_NAME = "events"

IDENTIFIER_TEXT_LENGTH = 36
IDENTIFIER_BINARY_LENGTH = 16
RECORDED_AT_LENGTH = 32
TYPE_LENGTH = 255

# Portable auto-increment primary key:
# - Postgres: BIGINT IDENTITY
# - SQLite: rowid-backed autoincrement (INTEGER PRIMARY KEY)
BIGINT_PK = BigInteger().with_variant(Integer(), "sqlite")


def identifier_type(binary: bool) -> TypeEngine:
    """Return the column type of the ``identifier`` column.

    Binary mode stores 16 raw bytes: ``BYTEA`` on Postgres, ``BLOB`` on
    SQLite, and a fixed ``BINARY(16)`` where the backend supports it.
    """
    if not binary:
        return String(IDENTIFIER_TEXT_LENGTH)
    return (
        LargeBinary(IDENTIFIER_BINARY_LENGTH)
        .with_variant(BINARY(IDENTIFIER_BINARY_LENGTH), "mysql")
        .with_variant(BINARY(IDENTIFIER_BINARY_LENGTH), "mariadb")
    )


def build_event_table(
    table_name: str, metadata: MetaData, *, binary: bool = False
) -> Table:
    """Define an event table named `table_name` on `metadata`.

    Args:
        table_name: Name of the table to define.
        metadata: The metadata the table attaches to.
        binary: Store identifiers as 16-byte binary UUIDs instead of text.

    Returns:
        The new `Table`.
    """
    return Table(
        table_name,
        metadata,
        Column(
            "id",
            BIGINT_PK,
            Identity(start=1),
            primary_key=True,
            nullable=False,
            comment="Global, monotonically increasing insertion sequence.",
        ),
        Column(
            "identifier",
            identifier_type(binary),
            nullable=False,
            comment="Aggregate identifier (text, or 16-byte binary UUID).",
        ),
        Column(
            "position",
            Integer,
            nullable=False,
            comment="Zero-based position of the event within its aggregate stream.",
        ),
        Column(
            "payload",
            Text,
            nullable=False,
            comment="Serialized event payload (JSON text).",
        ),
        Column(
            "metadata",
            Text,
            nullable=False,
            comment="Serialized event metadata (JSON text).",
        ),
        Column(
            "recorded_at",
            String(RECORDED_AT_LENGTH),
            nullable=False,
            comment="ISO-8601 UTC timestamp; sorts lexically in time order.",
        ),
        Column(
            "type",
            String(TYPE_LENGTH),
            nullable=False,
            comment="Event type tag.",
        ),
        UniqueConstraint("identifier", "position"),
        CheckConstraint("position >= 0", name="non_negative_position"),
        comment="Append-only event log. One row per domain event.",
    )
