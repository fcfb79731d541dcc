"""Fixtures shared by the EventStore contract tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from chronicle.adapters.eventstore.identifiers import UuidPacker
from chronicle.adapters.eventstore.in_memory_adapters import InMemoryEventStore
from chronicle.adapters.eventstore.sqlalchemy_adapters import SqlAlchemyEventStore
from chronicle.adapters.serializers import DocumentSerializer
from chronicle.interfaces.eventstore import EventStore

# pylint: disable=redefined-outer-name


@pytest.fixture(params=["memory", "memory-binary", "sqlite", "sqlite-binary"])
def eventstore(
    request: pytest.FixtureRequest, sqlite_engine_memory
) -> Iterator[EventStore]:
    """Return a fresh event store for the requested backend and identifier mode.

    Current params:
      - `"memory"` / `"memory-binary"` -> `InMemoryEventStore`
      - `"sqlite"` / `"sqlite-binary"` -> `SqlAlchemyEventStore` on in-memory SQLite

    Identifiers used by the contract tests are UUIDs so that every test runs
    unchanged in both text and binary mode.
    """
    backend, _, mode = request.param.partition("-")
    options = {"use_binary": mode == "binary", "uuid_packer": UuidPacker()}
    match backend:
        case "memory":
            yield InMemoryEventStore(**options)
        case "sqlite":
            store = SqlAlchemyEventStore(
                sqlite_engine_memory,
                DocumentSerializer(),
                DocumentSerializer(),
                **options,
            )
            store.create_table()
            yield store
        case _:
            raise ValueError(f"unknown store type: {request.param}")
