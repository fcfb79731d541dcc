"""Configuration utilities for CHRONICLE.

Settings come from the environment:

| Variable                       | Meaning                                  | Default  |
|--------------------------------|------------------------------------------|----------|
| `CHRONICLE_DB_URL`             | SQLAlchemy database URL                  | required |
| `CHRONICLE_EVENT_TABLE`        | Name of the event table                  | `events` |
| `CHRONICLE_BINARY_IDENTIFIERS` | Store identifiers as 16-byte UUIDs       | off      |
"""

import os
import sys
from importlib.resources import files
from typing import TextIO

from alembic.config import Config

from chronicle.adapters.eventstore.schema import DEFAULT_TABLE_NAME

DB_URL_ENV = "CHRONICLE_DB_URL"  # pragma: no mutate
EVENT_TABLE_ENV = "CHRONICLE_EVENT_TABLE"  # pragma: no mutate
BINARY_IDENTIFIERS_ENV = "CHRONICLE_BINARY_IDENTIFIERS"  # pragma: no mutate

ALEMBIC_URL_KEY = "sqlalchemy.url"  # pragma: no mutate
ALEMBIC_SCRIPT_LOCATION_KEY = "script_location"  # pragma: no mutate

TRUTHY = {"1", "true", "yes", "on"}


class DatabaseUrlNotSetError(Exception):
    """Raised when the CHRONICLE_DB_URL environment variable is not set."""


def get_db_url() -> str:
    """Get the database URL from the environment.

    Raises:
        DatabaseUrlNotSetError: If `CHRONICLE_DB_URL` is not set.
    """
    if not (url := os.environ.get(DB_URL_ENV)):
        raise DatabaseUrlNotSetError
    return url


def get_event_table_name() -> str:
    """Name of the event table (`CHRONICLE_EVENT_TABLE`, default ``events``)."""
    return os.environ.get(EVENT_TABLE_ENV, "").strip() or DEFAULT_TABLE_NAME


def use_binary_identifiers() -> bool:
    """Whether identifiers are stored as 16-byte binary UUIDs."""
    return os.environ.get(BINARY_IDENTIFIERS_ENV, "").strip().lower() in TRUTHY


def build_alembic_config(
    db_url: str | None = None, stdout: TextIO = sys.stdout
) -> Config:
    """Build an Alembic `Config` object for CHRONICLE's migrations.

    Args:
        db_url: SQLAlchemy database URL. Can be `None` only in contexts where
            Alembic won't need to connect to the DB.
        stdout: Text stream Alembic writes status lines to.

    Returns:
        An `alembic.config.Config` pointing to CHRONICLE's migration scripts.
    """
    cfg = Config(stdout=stdout)
    if db_url is not None:
        cfg.set_main_option(ALEMBIC_URL_KEY, db_url)
    cfg.set_main_option(
        ALEMBIC_SCRIPT_LOCATION_KEY,
        str(files("chronicle.adapters.db.alembic")),
    )
    return cfg
