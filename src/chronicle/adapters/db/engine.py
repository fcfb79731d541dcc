"""Database engine factory and helpers.

The event store borrows a pooled connection for every call, so engines must
be safe to share between threads and calls:

- **SQLite files**: PRAGMAs enable WAL and a busy timeout so concurrent
  writers wait for each other and then hit the unique constraint instead of
  failing with ``database is locked``.
- **SQLite in-memory**: the database lives inside one DBAPI connection, held
  by a one-slot ``QueuePool``. A caller checks it out for the whole
  ``connect()``/``begin()`` block, so callers in other threads wait their turn
  and never share an open transaction. Code holding a connection (e.g. a scan
  visitor) must not call back into the same engine.
- **Other backends**: no tuning applied here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.pool import QueuePool

if TYPE_CHECKING:
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Engine

SQLITE_NAMES = {"sqlite", "sqlite+pysqlite"}

#: Milliseconds a SQLite writer waits for a competing write transaction.
SQLITE_BUSY_TIMEOUT_MS = 10_000

#: Seconds a caller waits for the in-memory database's only connection.
SQLITE_MEMORY_CHECKOUT_TIMEOUT_S = 30


def is_sqlite(url: str | URL) -> bool:
    """Return True if the given SQLAlchemy URL or string corresponds to SQLite."""
    u = make_url(str(url))
    return u.get_backend_name() in SQLITE_NAMES


def is_sqlite_memory(url: str | URL) -> bool:
    """Return True for SQLite URLs without a database file (``:memory:``)."""
    u = make_url(str(url))
    return is_sqlite(u) and u.database in (None, "", ":memory:")


def make_engine(url: str | URL, *, echo: bool = False) -> Engine:
    """Create a SQLAlchemy Engine for the given URL.

    For SQLite the following PRAGMAs are applied on connect:
        - ``journal_mode=WAL`` (readers do not block the writer)
        - ``synchronous=NORMAL`` (balanced durability)
        - ``busy_timeout`` (writers queue instead of failing immediately)

    In-memory SQLite gets a pool of exactly one connection, which is never
    used by two callers at once.

    Args:
        url: Database connection URL (str or :class:`URL`).
        echo: If True, log SQL statements.

    Returns:
        Engine: Configured SQLAlchemy Engine.
    """

    kwargs: dict[str, Any] = {"echo": echo}
    if is_sqlite_memory(url):
        kwargs["poolclass"] = QueuePool
        kwargs["pool_size"] = 1
        kwargs["max_overflow"] = 0
        kwargs["pool_timeout"] = SQLITE_MEMORY_CHECKOUT_TIMEOUT_S
        # the connection moves between threads, one checkout at a time
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)

    if is_sqlite(url):

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn: SQLiteConnection, conn_record):  # type: ignore #pylint: disable=W0613
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA synchronous=NORMAL;")
            cur.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS};")
            cur.close()

    return engine
