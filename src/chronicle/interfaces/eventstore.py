"""Event store interfaces for CHRONICLE.

This module defines:
- The canonical `EventRecord` DTO and the ordered `EventStream` of records.
- The `EventStore` port for appending and loading per-aggregate streams.
- The `EventStoreManagement` port for criteria-based scans over all streams.
- A small, adapter-agnostic exception hierarchy for precise error handling.

Layering & dependency rules:
- Lives under `chronicle.interfaces`. Do NOT import from adapters or entrypoints.
- Safe to import from adapters and entrypoints.

Contract overview
-----------------
Append:
- Atomic write of an ordered batch for a **single** aggregate identifier.
- Rows are inserted in the order given; positions are not checked for
  contiguity (callers produce `last_known + 1, + 2, ...`).
- Errors:
  * `DuplicatePositionError` — `(identifier, position)` already exists; the
    whole batch is rolled back. Carries the records that were being appended.
  * `InvalidIdentifierError` — identifier cannot be stored by the configured
    identifier mode, or a record belongs to a different aggregate.
  * `StorageFailureError` — any other driver/DB failure; the batch is rolled back.

Reads:
- `load(identifier)` — full stream ascending by position;
  `EventStreamNotFoundError` if there are no events.
- `load_from_position(identifier, position)` — events with position >= N;
  an empty stream is a valid result.
- `visit_events(criteria, visitor)` — all matching events in global insertion
  order, pushed one at a time to the visitor.
"""

from __future__ import annotations

import abc
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, TypeAlias

# --- Exceptions to standardize adapter behavior ---


class EventStoreError(Exception):
    """Base class for CHRONICLE event store errors."""


class EventStoreConfigurationError(EventStoreError):
    """The event store was constructed with an unusable configuration."""


class EventStreamNotFoundError(EventStoreError):
    """No events have ever been recorded for the aggregate."""

    def __init__(self, identifier: str, table_name: str):
        super().__init__(
            f"EventStream not found for aggregate with id {identifier} "
            f"for table {table_name}"
        )
        self.identifier = identifier
        self.table_name = table_name


class DuplicatePositionError(EventStoreError):
    """An appended position already exists in the stream (optimistic concurrency).

    Attributes:
        records (EventStream): The records that were being appended.
    """

    def __init__(self, records: EventStream, message: str | None = None):
        super().__init__(
            message or "Duplicate position detected while appending events."
        )
        self.records = records


class InvalidIdentifierError(EventStoreError):
    """The identifier cannot be used with the configured storage mode."""


class CriteriaNotSupportedError(EventStoreError):
    """The scan criteria cannot be expressed by this event store."""


class CorruptRecordError(EventStoreError):
    """A stored record could not be decoded."""


class StorageFailureError(EventStoreError):
    """Wraps a lower-level storage failure; retry policy is up to the caller."""


class SerializationError(EventStoreError):
    """A value could not be serialized or deserialized."""


# --- Record DTO ---

#: Largest position a stream can hold (stored in a 32-bit INTEGER column).
MAX_POSITION = 2**31 - 1


@dataclass(frozen=True, slots=True)
class EventRecord:
    """A single domain event within an aggregate's stream.

    Notes:
      - `position` is the zero-based playhead of the event within its stream.
      - `recorded_at` must be tz-aware; it is normalized to UTC.
      - `payload` and `metadata` are opaque; the configured serializers decide
        how they are stored.
    """

    identifier: str
    position: int
    metadata: Any
    payload: Any
    recorded_at: datetime
    event_type: str

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or not self.identifier.strip():
            raise ValueError("identifier must be a non-empty string.")
        if self.position < 0:
            raise ValueError("position must be >= 0")
        if self.position > MAX_POSITION:
            raise ValueError(f"position must be <= {MAX_POSITION}")
        if not self.event_type.strip():
            raise ValueError("event_type must be non-empty.")
        if self.recorded_at.tzinfo is None or self.recorded_at.utcoffset() is None:
            raise ValueError("recorded_at must be tz-aware.")
        if self.recorded_at.utcoffset() != timedelta(0) or (
            self.recorded_at.tzinfo is not timezone.utc
        ):
            # frozen dataclass; bypass __setattr__ to normalize
            object.__setattr__(
                self, "recorded_at", self.recorded_at.astimezone(timezone.utc)
            )

    @classmethod
    def record_now(
        cls, identifier: str, position: int, metadata: Any, payload: Any
    ) -> EventRecord:
        """Create a record stamped with the current UTC time.

        The event type is derived from the payload's class, e.g.
        ``shop.events.OrderPlaced``.
        """
        return cls(
            identifier=identifier,
            position=position,
            metadata=metadata,
            payload=payload,
            recorded_at=datetime.now(timezone.utc),
            event_type=event_type_of(payload),
        )


def event_type_of(payload: Any) -> str:
    """Return the dotted type name used to tag events carrying ``payload``."""
    payload_type = type(payload)
    return f"{payload_type.__module__}.{payload_type.__qualname__}"


class EventStream(Sequence[EventRecord]):
    """An immutable, ordered sequence of event records."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[EventRecord] = ()):
        self._records: tuple[EventRecord, ...] = tuple(records)

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return EventStream(self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EventStream):
            return self._records == other._records
        return NotImplemented

    def __repr__(self) -> str:
        return f"EventStream({list(self._records)!r})"


# --- Scan criteria ---


@dataclass(frozen=True, slots=True)
class Criteria:
    """Filter used to select a cross-stream subset of history.

    Each non-empty set is a predicate; predicates are combined with AND,
    values within a set with OR. An empty criteria matches everything.
    """

    aggregate_root_types: frozenset[str] = field(default_factory=frozenset)
    aggregate_root_ids: frozenset[str] = field(default_factory=frozenset)
    event_types: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def create(cls) -> Criteria:
        """Return an empty criteria (full scan)."""
        return cls()

    def with_aggregate_root_types(self, *types: str) -> Criteria:
        """Return a copy restricted to the given aggregate root types."""
        return Criteria(frozenset(types), self.aggregate_root_ids, self.event_types)

    def with_aggregate_root_ids(self, *ids: str) -> Criteria:
        """Return a copy restricted to the given aggregate identifiers."""
        return Criteria(self.aggregate_root_types, frozenset(ids), self.event_types)

    def with_event_types(self, *types: str) -> Criteria:
        """Return a copy restricted to the given event types."""
        return Criteria(
            self.aggregate_root_types, self.aggregate_root_ids, frozenset(types)
        )


class EventVisitor(abc.ABC):
    """Handler invoked once per record matched by a scan."""

    @abc.abstractmethod
    def do_with_event(self, record: EventRecord) -> None:
        """Handle a single record."""


VisitorLike: TypeAlias = EventVisitor | Callable[[EventRecord], None]


def as_visit_callback(visitor: VisitorLike) -> Callable[[EventRecord], None]:
    """Normalize an `EventVisitor` or plain callable to a callable."""
    if isinstance(visitor, EventVisitor):
        return visitor.do_with_event
    return visitor


# --- Event Store Interfaces ---


class EventStore(abc.ABC):
    """An abstract base class for an event store."""

    @abc.abstractmethod
    def load(self, identifier: str) -> EventStream:
        """Load the complete stream of an aggregate, ordered by position.

        Raises:
            EventStreamNotFoundError: if no events exist for the aggregate.
            InvalidIdentifierError: if the identifier cannot be stored.
            CorruptRecordError: if a stored record cannot be decoded.
        """

    @abc.abstractmethod
    def load_from_position(self, identifier: str, position: int) -> EventStream:
        """Load events with a position >= `position`, ordered by position.

        Returns:
            The (possibly empty) stream of events.

        Raises:
            InvalidIdentifierError: if the identifier cannot be stored.
            CorruptRecordError: if a stored record cannot be decoded.
        """

    @abc.abstractmethod
    def append(self, identifier: str, records: Sequence[EventRecord]) -> None:
        """Persist records atomically, in the order given.

        Appending an empty sequence is a no-op.

        Raises:
            DuplicatePositionError: when any (identifier, position) already exists.
            InvalidIdentifierError: when the identifier cannot be stored or a
                record belongs to a different aggregate.
            SerializationError: when a payload or metadata cannot be serialized.
            StorageFailureError: for any other storage failure.
        """


class EventStoreManagement(abc.ABC):
    """Management operations spanning all streams."""

    @abc.abstractmethod
    def visit_events(self, criteria: Criteria, visitor: VisitorLike) -> None:
        """Push every record matching `criteria` to `visitor`, in insertion order.

        Raises:
            CriteriaNotSupportedError: if the criteria filters on aggregate root types.
            CorruptRecordError: if any matching record cannot be decoded.
        """
