"""In memory event store implementation.

All events are stored in memory and lost when the instance is discarded.
Use for unit tests, prototyping, or scenarios where durability is not required.

Rows go through the same `EventRowMapper` as the SQLAlchemy store, so
serialization, identifier conversion and decoding errors behave the same.
This implementation passes all contract tests for the EventStore interface.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from chronicle.adapters.serializers import DocumentSerializer
from chronicle.interfaces.eventstore import (
    Criteria,
    CriteriaNotSupportedError,
    DuplicatePositionError,
    EventRecord,
    EventStore,
    EventStoreManagement,
    EventStream,
    EventStreamNotFoundError,
    InvalidIdentifierError,
    VisitorLike,
    as_visit_callback,
)

from ..identifiers import UuidPacker, make_identifier_codec
from ..row_mapper import EventRowMapper

if TYPE_CHECKING:
    from chronicle.interfaces.serializer import Serializer


class InMemoryEventStore(EventStore, EventStoreManagement):
    """In-memory EventStore for testing and non-durable use cases.

    - Non-durable: all data is lost when the instance is discarded.
    - Appends are serialized by a lock; a batch is applied all-or-nothing.
    """

    def __init__(
        self,
        payload_serializer: Serializer | None = None,
        metadata_serializer: Serializer | None = None,
        *,
        use_binary: bool = False,
        uuid_packer: UuidPacker | None = None,
    ):
        self.identifiers = make_identifier_codec(use_binary, uuid_packer)
        self.mapper = EventRowMapper(
            self.identifiers,
            payload_serializer or DocumentSerializer(),
            metadata_serializer or DocumentSerializer(),
        )
        self.table_name = "memory"
        self._rows: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    # --------------------------------------------------------------------- #
    # Interface implementation
    # --------------------------------------------------------------------- #

    def load(self, identifier: str) -> EventStream:
        if not (stream := self.load_from_position(identifier, 0)):
            raise EventStreamNotFoundError(identifier, self.table_name)
        return stream

    def load_from_position(self, identifier: str, position: int) -> EventStream:
        if position < 0:
            raise ValueError("position must be >= 0")
        storage_id = self.identifiers.to_storage(identifier)
        with self._lock:
            rows = [
                row
                for row in self._rows
                if row["identifier"] == storage_id and row["position"] >= position
            ]
        rows.sort(key=lambda row: row["position"])
        return EventStream(self.mapper.from_row(row) for row in rows)

    def append(self, identifier: str, records: Sequence[EventRecord]) -> None:
        stream = EventStream(records)
        if not stream:
            return

        storage_id = self.identifiers.to_storage(identifier)
        rows = []
        for record in stream:
            row = self.mapper.to_row(record)
            if row["identifier"] != storage_id:
                raise InvalidIdentifierError(
                    f"Record for aggregate {record.identifier!r} cannot be appended "
                    f"to the stream of {identifier!r}."
                )
            rows.append(row)

        with self._lock:
            taken = self._taken_positions(storage_id)
            for row in rows:
                if row["position"] in taken:
                    raise DuplicatePositionError(
                        stream,
                        f"position {row['position']} already exists for {identifier}",
                    )
                taken.add(row["position"])

            next_id = len(self._rows) + 1
            for offset, row in enumerate(rows):
                self._rows.append(row | {"id": next_id + offset})

    def visit_events(self, criteria: Criteria, visitor: VisitorLike) -> None:
        if criteria.aggregate_root_types:
            raise CriteriaNotSupportedError(
                "In-memory implementation cannot support criteria based on "
                "aggregate root types."
            )
        storage_ids = {
            self.identifiers.to_storage(identifier)
            for identifier in criteria.aggregate_root_ids
        }
        visit = as_visit_callback(visitor)

        with self._lock:
            rows = list(self._rows)

        for row in rows:  # already in insertion order
            if storage_ids and row["identifier"] not in storage_ids:
                continue
            if criteria.event_types and row["type"] not in criteria.event_types:
                continue
            visit(self.mapper.from_row(row))

    # --------------------------------------------------------------------- #
    # Internals
    # --------------------------------------------------------------------- #

    def _taken_positions(self, storage_id: str | bytes) -> set[int]:
        """Return the positions already recorded for a stored identifier."""
        return {
            row["position"] for row in self._rows if row["identifier"] == storage_id
        }
