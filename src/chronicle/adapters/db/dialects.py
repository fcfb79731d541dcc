"""Dialect names and error classification for CHRONICLE's supported backends.

The event store relies on exactly one database signal for concurrency
control: a violation of the unique ``(identifier, position)`` constraint.
Drivers report it differently, so the detection lives here next to the
list of supported dialects.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alembic.runtime.migration import MigrationContext
    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.exc import DBAPIError

# SQLSTATE class 23 / code 23505 = unique_violation (ISO SQL, used by Postgres)
UNIQUE_VIOLATION_SQLSTATE = "23505"  # pragma: no mutate

# any of these fragments in a lower-cased driver message marks a unique violation
UNIQUE_VIOLATION_KEYWORDS = (
    "unique constraint",
    "duplicate key",
    "duplicate entry",
)  # pragma: no mutate


class UnsupportedDialect(Exception):
    """Raised when an unsupported database dialect is encountered."""


class DialectName(str, Enum):
    """Supported SQLAlchemy dialect names.

    Attributes:
        POSTGRES: PostgreSQL dialect (``"postgresql"``).
        SQLITE:   SQLite dialect (``"sqlite"``).
    """

    POSTGRES = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def from_string(cls, dialect_str: str) -> DialectName:
        """Normalize a raw or driver-qualified dialect string.

        Accepts aliases such as ``postgres``, ``pg`` or ``sqlite+pysqlite``.

        Raises:
            UnsupportedDialect: if the dialect is not recognized or supported.
        """

        base = (dialect_str or "").strip().lower().split("+", 1)[0]
        if base in {"postgres", "postgresql", "pg"}:
            return cls.POSTGRES
        if base == cls.SQLITE.value:
            return cls.SQLITE
        raise UnsupportedDialect(f"Unsupported dialect: {dialect_str!r}")

    @classmethod
    def from_sqlalchemy(
        cls, obj: Engine | Connection | MigrationContext
    ) -> DialectName:
        """Extract the dialect of an Engine, Connection or Alembic MigrationContext.

        Raises:
            UnsupportedDialect: if the object has no dialect or it is not supported.
        """
        try:
            name = obj.dialect.name
        except AttributeError as e:
            raise UnsupportedDialect(
                f"Object {type(obj).__name__} does not expose .dialect.name"
            ) from e
        return cls.from_string(name)


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    # psycopg (v3) exposes .sqlstate, psycopg2 exposes .pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_unique_violation(error: DBAPIError) -> bool:
    """Return True if `error` reports a violated unique constraint.

    Prefers the driver's SQLSTATE when present and falls back to the message
    of the original DBAPI exception (or of the wrapper when there is none).

    Args:
        error: The SQLAlchemy exception wrapping a DBAPI error.
    """
    if (sqlstate := _sqlstate(error)) is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    msg = str(error.orig) if error.orig not in (None, "") else str(error)
    msg = msg.lower()
    return any(keyword in msg for keyword in UNIQUE_VIOLATION_KEYWORDS)
