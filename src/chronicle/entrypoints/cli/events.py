"""CHRONICLE events CLI: read-only access to recorded history.

``chronicle events export`` scans the event table in global insertion order
and writes one JSON document per event (JSON Lines). Payload and metadata are
exported as stored, without resolving serialized classes, so any table can
be exported without importing the application that wrote it.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, TextIO

import click
import click_extra as clickx

from chronicle import config
from chronicle.adapters.db.engine import make_engine
from chronicle.adapters.eventstore.identifiers import UuidPacker
from chronicle.adapters.eventstore.row_mapper import format_recorded_at
from chronicle.adapters.eventstore.sqlalchemy_adapters import SqlAlchemyEventStore
from chronicle.adapters.serializers import DocumentSerializer
from chronicle.interfaces.eventstore import (
    Criteria,
    EventRecord,
    EventStoreError,
    EventVisitor,
)

from .db import get_checked_url

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class JsonLinesExporter(EventVisitor):
    """Writes each visited record as one JSON line."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.count = 0

    def do_with_event(self, record: EventRecord) -> None:
        document = {
            "identifier": record.identifier,
            "position": record.position,
            "type": record.event_type,
            "recorded_at": format_recorded_at(record.recorded_at),
            "metadata": record.metadata,
            "payload": record.payload,
        }
        self.stream.write(json.dumps(document, sort_keys=True) + "\n")
        self.count += 1


def build_export_store(engine: Engine) -> SqlAlchemyEventStore:
    """Build a store reading the configured table with pass-through serializers."""
    return SqlAlchemyEventStore(
        engine,
        DocumentSerializer(),
        DocumentSerializer(),
        config.get_event_table_name(),
        use_binary=config.use_binary_identifiers(),
        uuid_packer=UuidPacker(),
    )


@click.group(cls=clickx.ExtraGroup)
def events() -> None:
    """Read recorded events."""


@events.command()
@click.option(
    "--id",
    "identifiers",
    multiple=True,
    help="Only export events of this aggregate (repeatable).",
)
@click.option(
    "--type",
    "event_types",
    multiple=True,
    help="Only export events of this type (repeatable).",
)
@click.option(
    "--output",
    "-o",
    type=click.File("w", encoding="utf-8"),
    default="-",
    show_default=True,
    help="File to write JSON Lines to.",
)
def export(
    identifiers: tuple[str, ...], event_types: tuple[str, ...], output: TextIO
) -> None:
    """Export events as JSON Lines, in the order they were recorded."""
    criteria = (
        Criteria.create()
        .with_aggregate_root_ids(*identifiers)
        .with_event_types(*event_types)
    )
    engine = make_engine(get_checked_url())
    exporter = JsonLinesExporter(output)
    try:
        build_export_store(engine).visit_events(criteria, exporter)
    except EventStoreError as e:
        raise click.ClickException(f"Export failed: {e}") from e
    finally:
        engine.dispose()
    logger.info("Exported %d event(s)", exporter.count)
