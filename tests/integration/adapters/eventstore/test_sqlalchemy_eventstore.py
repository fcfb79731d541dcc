"""Integration tests for SqlAlchemyEventStore against migrated databases.

These tests validate what the in-memory contract cannot:
- rows written by other tools (or damaged by hand) are reported as corrupt,
- driver failures surface as StorageFailureError,
- binary identifiers are stored as 16 raw bytes,
- scans stream more rows than one fetch batch in insertion order,
- duplicate positions are logged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
from alembic import command
from sqlalchemy import text

from chronicle import config
from chronicle.adapters.db.engine import make_engine
from chronicle.adapters.eventstore.identifiers import UuidPacker
from chronicle.adapters.eventstore.sqlalchemy_adapters import SqlAlchemyEventStore
from chronicle.adapters.eventstore.sqlalchemy_adapters.eventstore import (
    SCAN_BATCH_SIZE,
)
from chronicle.adapters.serializers import DocumentSerializer, SerializableSerializer
from chronicle.interfaces.eventstore import (
    CorruptRecordError,
    Criteria,
    DuplicatePositionError,
    InvalidIdentifierError,
    StorageFailureError,
)
from tests.fixtures.datagen import OrderPlaced, new_identifier

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

# pylint: disable=redefined-outer-name

CORRUPT_ROW_SQL = text(
    "INSERT INTO events (identifier, position, payload, metadata, recorded_at, type) "
    "VALUES (:identifier, :position, :payload, '{}', "
    "'2024-01-01T00:00:00.000000+00:00', 'Broken')"
)


def _store(engine: Engine, **kwargs) -> SqlAlchemyEventStore:
    return SqlAlchemyEventStore(
        engine, DocumentSerializer(), DocumentSerializer(), **kwargs
    )


@pytest.mark.parametrize(
    "engine", ["sqlite_engine_file", "postgres_engine"], indirect=True
)
class TestMigratedTable:
    """Behavior against a table created by `alembic upgrade head`."""

    @staticmethod
    def test_round_trip_with_typed_payloads(engine, make_record):
        store = SqlAlchemyEventStore(
            engine, SerializableSerializer(), DocumentSerializer()
        )
        identifier = new_identifier()
        records = [
            make_record(identifier, 0, payload=OrderPlaced("o-1", 10)),
            make_record(identifier, 1, payload=OrderPlaced("o-2", 20)),
        ]

        store.append(identifier, records)

        assert list(store.load(identifier)) == records

    @staticmethod
    def test_stored_columns(engine, make_record):
        identifier = new_identifier()
        _store(engine).append(identifier, [make_record(identifier, 0, payload={"a": 1})])

        with engine.connect() as conn:
            row = conn.execute(
                text("SELECT identifier, payload, recorded_at, type FROM events")
            ).one()
        assert row.identifier == identifier
        assert row.payload == '{"a": 1}'
        assert row.recorded_at == "2024-05-17T12:30:45.123456+00:00"
        assert row.type == "TestEvent"

    @staticmethod
    def test_corrupt_payload_fails_load_and_scan(engine, make_record):
        store = _store(engine)
        identifier = new_identifier()
        store.append(identifier, [make_record(identifier, 0)])
        with engine.begin() as conn:
            conn.execute(
                CORRUPT_ROW_SQL,
                {"identifier": identifier, "position": 1, "payload": "{oops"},
            )

        with pytest.raises(CorruptRecordError, match="position 1"):
            store.load(identifier)
        with pytest.raises(CorruptRecordError):
            store.visit_events(Criteria.create(), lambda record: None)
        # reads past the damaged row are unaffected
        assert not store.load_from_position(identifier, 2)

    @staticmethod
    def test_scan_streams_more_than_one_batch(engine, make_stream):
        store = _store(engine)
        a, b = new_identifier(), new_identifier()
        half = SCAN_BATCH_SIZE // 2 + 10
        for start in range(0, half, 50):
            store.append(a, make_stream(a, 50, start=start))
            store.append(b, make_stream(b, 50, start=start))

        seen = []
        store.visit_events(Criteria.create(), seen.append)

        assert len(seen) > SCAN_BATCH_SIZE
        for identifier in (a, b):
            positions = [r.position for r in seen if r.identifier == identifier]
            assert positions == sorted(positions)

    @staticmethod
    def test_duplicate_position_is_logged(engine, make_record, caplog):
        store = _store(engine)
        identifier = new_identifier()
        store.append(identifier, [make_record(identifier, 0)])

        with caplog.at_level(logging.WARNING), pytest.raises(DuplicatePositionError):
            store.append(identifier, [make_record(identifier, 0)])

        assert any(
            "Duplicate position" in r.getMessage() and r.levelno == logging.WARNING
            for r in caplog.records
        )


def test_missing_table_is_a_storage_failure(sqlite_engine_memory, make_record):
    """Reading or writing a table that was never created fails as storage."""
    store = _store(sqlite_engine_memory, table_name="nowhere")

    with pytest.raises(StorageFailureError):
        store.load_from_position("A", 0)
    with pytest.raises(StorageFailureError):
        store.append("A", [make_record("A", 0)])
    with pytest.raises(StorageFailureError):
        store.visit_events(Criteria.create(), lambda record: None)


def test_custom_table_name(sqlite_engine_memory, make_stream):
    """Two stores with different tables share one database independently."""
    orders = _store(sqlite_engine_memory, table_name="orders")
    users = _store(sqlite_engine_memory, table_name="users")
    orders.create_table()
    users.create_table()

    orders.append("A", make_stream("A", 2))
    users.append("A", make_stream("A", 1))

    assert len(orders.load("A")) == 2
    assert len(users.load("A")) == 1


@pytest.fixture
def binary_engine(sqlite_url_file, monkeypatch):
    """SQLite file migrated with CHRONICLE_BINARY_IDENTIFIERS enabled."""
    monkeypatch.delenv(config.EVENT_TABLE_ENV, raising=False)
    monkeypatch.setenv(config.BINARY_IDENTIFIERS_ENV, "1")
    command.upgrade(config.build_alembic_config(sqlite_url_file), "head")
    eng = make_engine(sqlite_url_file)
    yield eng
    eng.dispose()


class TestBinaryIdentifiers:
    """Binary mode against a table migrated with CHRONICLE_BINARY_IDENTIFIERS."""

    @staticmethod
    def test_identifier_is_stored_as_16_bytes(binary_engine, make_stream):
        store = _store(binary_engine, use_binary=True, uuid_packer=UuidPacker())
        identifier = new_identifier()

        store.append(identifier, make_stream(identifier, 2))

        with binary_engine.connect() as conn:
            stored = conn.execute(
                text("SELECT DISTINCT identifier FROM events")
            ).scalar_one()
        assert isinstance(stored, bytes)
        assert len(stored) == 16
        assert [r.identifier for r in store.load(identifier)] == [identifier] * 2

    @staticmethod
    def test_scan_by_identifier(binary_engine, make_stream):
        store = _store(binary_engine, use_binary=True, uuid_packer=UuidPacker())
        a, b = new_identifier(), new_identifier()
        store.append(a, make_stream(a, 2))
        store.append(b, make_stream(b, 1))

        seen = []
        store.visit_events(Criteria.create().with_aggregate_root_ids(b), seen.append)
        assert [(r.identifier, r.position) for r in seen] == [(b, 0)]

    @staticmethod
    def test_non_uuid_identifier_is_rejected(binary_engine, make_record):
        store = _store(binary_engine, use_binary=True, uuid_packer=UuidPacker())

        with pytest.raises(InvalidIdentifierError, match="Only valid UUIDs"):
            store.append("order-42", [make_record("order-42", 0)])
        with pytest.raises(InvalidIdentifierError):
            store.load("order-42")
        with pytest.raises(InvalidIdentifierError):
            store.visit_events(
                Criteria.create().with_aggregate_root_ids("order-42"), print
            )
