"""SQLAlchemy-backed EventStore adapter for CHRONICLE.

This module provides a SQLAlchemy Core implementation of the `EventStore`
and `EventStoreManagement` ports. Events live in a single table (see
`adapters.eventstore.schema`) and the database's unique
``(identifier, position)`` constraint is the only concurrency control: two
appends racing for the same position cannot both commit.

Usage:
    Instantiate SqlAlchemyEventStore with an Engine. The store borrows a
    pooled connection for each call and never keeps one open between calls.

Classes:
    SqlAlchemyEventStore -- Implements EventStore and EventStoreManagement.

Exceptions:
    Maps SQLAlchemy errors to CHRONICLE event store exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import Select, bindparam, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chronicle.adapters.db.dialects import is_unique_violation
from chronicle.adapters.db.metadata import make_metadata
from chronicle.interfaces.eventstore import (
    MAX_POSITION,
    Criteria,
    CriteriaNotSupportedError,
    DuplicatePositionError,
    EventRecord,
    EventStore,
    EventStoreManagement,
    EventStream,
    EventStreamNotFoundError,
    InvalidIdentifierError,
    StorageFailureError,
    VisitorLike,
    as_visit_callback,
)

from ..identifiers import UuidPacker, make_identifier_codec
from ..row_mapper import EventRowMapper
from ..schema import DEFAULT_TABLE_NAME, build_event_table

if TYPE_CHECKING:
    from sqlalchemy import MetaData, Table
    from sqlalchemy.engine import Engine

    from chronicle.interfaces.serializer import Serializer

logger = logging.getLogger(__name__)

#: Rows fetched per round trip while scanning.
SCAN_BATCH_SIZE = 500


class SqlAlchemyEventStore(EventStore, EventStoreManagement):
    """SQLAlchemy-backed EventStore.

    - One table per store; identifiers stored as text or 16-byte binary UUIDs.
    - Appends are atomic and insert rows in the order given.
    - Loads return fully materialized streams ordered by position.
    - Scans stream rows in global insertion order to a visitor.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        engine: Engine,
        payload_serializer: Serializer,
        metadata_serializer: Serializer,
        table_name: str = DEFAULT_TABLE_NAME,
        *,
        use_binary: bool = False,
        uuid_packer: UuidPacker | None = None,
    ):
        self.engine = engine
        self.table_name = table_name
        self.use_binary = use_binary
        self.identifiers = make_identifier_codec(use_binary, uuid_packer)
        self.mapper = EventRowMapper(
            self.identifiers, payload_serializer, metadata_serializer
        )
        self.table = build_event_table(table_name, make_metadata(), binary=use_binary)
        self._load_statement = self._build_load_statement()

    # --------------------------------------------------------------------- #
    # Schema
    # --------------------------------------------------------------------- #

    def configure_schema(self, metadata: MetaData) -> Table | None:
        """Add this store's table to `metadata` unless it is already there.

        Returns:
            The new table, or None if `metadata` already defines it.
        """
        if self.table_name in metadata.tables:
            return None
        return self.configure_table(metadata)

    def configure_table(self, metadata: MetaData | None = None) -> Table:
        """Define this store's table on `metadata` (a fresh one by default)."""
        return build_event_table(
            self.table_name,
            metadata if metadata is not None else make_metadata(),
            binary=self.use_binary,
        )

    def create_table(self) -> None:
        """Create this store's table if it does not exist yet."""
        self.table.create(self.engine, checkfirst=True)

    # --------------------------------------------------------------------- #
    # Interface implementation
    # --------------------------------------------------------------------- #

    def load(self, identifier: str) -> EventStream:
        stream = self.load_from_position(identifier, 0)
        if not stream:
            raise EventStreamNotFoundError(identifier, self.table_name)
        return stream

    def load_from_position(self, identifier: str, position: int) -> EventStream:
        if position < 0:
            raise ValueError("position must be >= 0")
        storage_id = self.identifiers.to_storage(identifier)
        if position > MAX_POSITION:
            # records never exceed MAX_POSITION
            return EventStream()
        try:
            with self.engine.connect() as conn:
                rows = (
                    conn.execute(
                        self._load_statement,
                        {"identifier": storage_id, "from_position": position},
                    )
                    .mappings()
                    .all()
                )
        except SQLAlchemyError as e:
            raise StorageFailureError(str(e)) from e

        stream = EventStream(self.mapper.from_row(row) for row in rows)
        logger.debug(
            "Loaded %d event(s) for %s from position %d", len(stream), identifier, position
        )
        return stream

    def append(self, identifier: str, records: Sequence[EventRecord]) -> None:
        stream = EventStream(records)
        if not stream:
            logger.debug("Nothing to append for %s", identifier)
            return

        # Convert everything up front so bad identifiers or payloads fail
        # before a transaction is opened.
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

        try:
            with self.engine.begin() as conn:
                for row in rows:
                    conn.execute(insert(self.table).values(**row))
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.warning(
                    "Duplicate position while appending %d event(s) to %s (positions %s)",
                    len(stream),
                    identifier,
                    [record.position for record in stream],
                )
                raise DuplicatePositionError(stream, str(e.orig or e)) from e
            raise StorageFailureError(str(e)) from e
        except SQLAlchemyError as e:  # OperationalError, DataError, etc.
            raise StorageFailureError(str(e)) from e

        logger.debug("Appended %d event(s) to %s", len(stream), identifier)

    def visit_events(self, criteria: Criteria, visitor: VisitorLike) -> None:
        stmt = self._build_visit_statement(criteria)
        visit = as_visit_callback(visitor)

        count = 0
        try:
            with self.engine.connect() as conn:
                result = conn.execution_options(yield_per=SCAN_BATCH_SIZE).execute(
                    stmt
                )
                for row in result.mappings():
                    visit(self.mapper.from_row(row))
                    count += 1
        except SQLAlchemyError as e:
            raise StorageFailureError(str(e)) from e

        logger.debug("Visited %d event(s) in %s", count, self.table_name)

    # --------------------------------------------------------------------- #
    # Internals
    # --------------------------------------------------------------------- #

    def _select_columns(self) -> Select:
        t = self.table
        return select(
            t.c.identifier,
            t.c.position,
            t.c.metadata,
            t.c.payload,
            t.c.recorded_at,
            t.c.type,
        )

    def _build_load_statement(self) -> Select:
        """Build the (parameterized) statement used by every load."""
        t = self.table
        return (
            self._select_columns()
            .where(t.c.identifier == bindparam("identifier"))
            .where(t.c.position >= bindparam("from_position"))
            .order_by(t.c.position.asc())
        )

    def _build_visit_statement(self, criteria: Criteria) -> Select:
        """Translate criteria into a filtered, insertion-ordered select.

        Raises:
            CriteriaNotSupportedError: if aggregate root types are requested.
            InvalidIdentifierError: if an identifier cannot be stored.
        """
        if criteria.aggregate_root_types:
            raise CriteriaNotSupportedError(
                "SQLAlchemy implementation cannot support criteria based on "
                "aggregate root types."
            )

        t = self.table
        stmt = self._select_columns()
        if criteria.aggregate_root_ids:
            storage_ids = [
                self.identifiers.to_storage(identifier)
                for identifier in sorted(criteria.aggregate_root_ids)
            ]
            stmt = stmt.where(t.c.identifier.in_(storage_ids))
        if criteria.event_types:
            stmt = stmt.where(t.c.type.in_(sorted(criteria.event_types)))
        return stmt.order_by(t.c.id.asc())
