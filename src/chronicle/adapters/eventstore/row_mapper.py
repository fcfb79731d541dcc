"""Conversions between EventRecords and event table rows."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from chronicle.interfaces.eventstore import (
    CorruptRecordError,
    EventRecord,
    EventStoreError,
    SerializationError,
)

if TYPE_CHECKING:
    from chronicle.interfaces.serializer import Serializer

    from .identifiers import IdentifierCodec

ROW_COLUMNS = (
    "identifier",
    "position",
    "payload",
    "metadata",
    "recorded_at",
    "type",
)  # pragma: no mutate


def format_recorded_at(value: datetime) -> str:
    """Render a timestamp as a fixed-width, lexically sortable UTC string.

    Example: ``2024-01-02T03:04:05.123456+00:00``
    """
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_recorded_at(value: str) -> datetime:
    """Parse a string produced by :func:`format_recorded_at`."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no UTC offset")
    return parsed.astimezone(timezone.utc)


class EventRowMapper:
    """Maps between EventRecords and flat table rows.

    Payload and metadata are handed to their serializer and the resulting
    structure is stored as JSON text.
    """

    def __init__(
        self,
        identifiers: IdentifierCodec,
        payload_serializer: Serializer,
        metadata_serializer: Serializer,
    ) -> None:
        self.identifiers = identifiers
        self.payload_serializer = payload_serializer
        self.metadata_serializer = metadata_serializer

    def to_row(self, record: EventRecord) -> dict[str, Any]:
        """Convert a record to a row dict ready for insertion.

        Raises:
            InvalidIdentifierError: if the identifier cannot be stored.
            SerializationError: if payload or metadata cannot be serialized.
        """
        return {
            "identifier": self.identifiers.to_storage(record.identifier),
            "position": record.position,
            "payload": self._encode(self.payload_serializer, record.payload),
            "metadata": self._encode(self.metadata_serializer, record.metadata),
            "recorded_at": format_recorded_at(record.recorded_at),
            "type": record.event_type,
        }

    def from_row(self, row: Mapping[str, Any]) -> EventRecord:
        """Convert a stored row back to a record.

        Raises:
            CorruptRecordError: if any column cannot be decoded.
        """
        try:
            return EventRecord(
                identifier=self.identifiers.from_storage(row["identifier"]),
                position=int(row["position"]),
                metadata=self.metadata_serializer.deserialize(
                    json.loads(row["metadata"])
                ),
                payload=self.payload_serializer.deserialize(json.loads(row["payload"])),
                recorded_at=parse_recorded_at(row["recorded_at"]),
                event_type=row["type"],
            )
        except (EventStoreError, ValueError, TypeError, KeyError) as e:
            # json.JSONDecodeError is a ValueError
            raise CorruptRecordError(
                f"Could not decode event at position {row.get('position')!r}: {e}"
            ) from e

    @staticmethod
    def _encode(serializer: Serializer, value: Any) -> str:
        structure = serializer.serialize(value)
        try:
            return json.dumps(structure, sort_keys=True, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"{type(serializer).__name__} produced a value that is not JSON "
                f"serializable: {e}"
            ) from e
