"""Contract tests for the EventStoreManagement port.

Scans visit every matching event exactly once, in global insertion order,
and refuse criteria the store cannot express before reading anything.
"""

from __future__ import annotations

import pytest

from chronicle.interfaces.eventstore import (
    Criteria,
    CriteriaNotSupportedError,
    EventStoreManagement,
    EventVisitor,
)
from tests.fixtures.datagen import new_identifier

# pylint: disable=redefined-outer-name


class Collector(EventVisitor):
    """Visitor remembering every record it is handed."""

    def __init__(self):
        self.records = []

    def do_with_event(self, record):
        self.records.append(record)


@pytest.fixture
def history(eventstore, make_record):
    """Append interleaved events of two aggregates; return their identifiers.

    Insertion order: a/0 (Opened), b/0 (Opened), a/1 (Renamed), b/1 (Closed),
    a/2 (Closed).
    """
    a, b = new_identifier(), new_identifier()
    eventstore.append(a, [make_record(a, 0, event_type="Opened")])
    eventstore.append(b, [make_record(b, 0, event_type="Opened")])
    eventstore.append(a, [make_record(a, 1, event_type="Renamed")])
    eventstore.append(b, [make_record(b, 1, event_type="Closed")])
    eventstore.append(a, [make_record(a, 2, event_type="Closed")])
    return a, b


def _visit(store: EventStoreManagement, criteria: Criteria) -> list[tuple[str, int]]:
    collector = Collector()
    store.visit_events(criteria, collector)
    return [(r.identifier, r.position) for r in collector.records]


def test_empty_criteria_visits_everything_in_insertion_order(eventstore, history):
    """Check that a full scan follows global insertion order across streams."""
    a, b = history
    assert _visit(eventstore, Criteria.create()) == [
        (a, 0),
        (b, 0),
        (a, 1),
        (b, 1),
        (a, 2),
    ]


def test_filter_by_aggregate_ids(eventstore, history):
    """Check that only events of the listed aggregates are visited."""
    a, _ = history
    assert _visit(eventstore, Criteria.create().with_aggregate_root_ids(a)) == [
        (a, 0),
        (a, 1),
        (a, 2),
    ]


def test_filter_by_event_types(eventstore, history):
    """Check that values within one predicate are combined with OR."""
    a, b = history
    criteria = Criteria.create().with_event_types("Opened", "Renamed")
    assert _visit(eventstore, criteria) == [(a, 0), (b, 0), (a, 1)]


def test_predicates_are_combined_with_and(eventstore, history):
    """Check that aggregate and type predicates must both match."""
    _, b = history
    criteria = Criteria.create().with_aggregate_root_ids(b).with_event_types("Closed")
    assert _visit(eventstore, criteria) == [(b, 1)]


def test_no_match_visits_nothing(eventstore, history):  # pylint: disable=unused-argument
    """Check that a scan without matches never calls the visitor."""
    criteria = Criteria.create().with_event_types("NeverHappened")
    assert not _visit(eventstore, criteria)


def test_empty_store_visits_nothing(eventstore):
    """Check that scanning an empty store is not an error."""
    assert not _visit(eventstore, Criteria.create())


def test_plain_callable_visitor(eventstore, history):
    """Check that a callable can stand in for an EventVisitor."""
    seen = []
    eventstore.visit_events(Criteria.create(), seen.append)
    assert len(seen) == 5
    assert {r.identifier for r in seen} == set(history)


def test_visited_records_are_complete(eventstore, make_record):
    """Check that visited records carry payload, metadata and type."""
    identifier = new_identifier()
    record = make_record(identifier, payload={"k": "v"}, event_type="Opened")
    eventstore.append(identifier, [record])

    seen = []
    eventstore.visit_events(Criteria.create(), seen.append)
    assert seen == [record]


def test_aggregate_root_types_are_not_supported(eventstore, history):  # pylint: disable=unused-argument
    """Check that filtering by aggregate root type fails before any visit."""
    collector = Collector()
    criteria = Criteria.create().with_aggregate_root_types("Order")

    with pytest.raises(CriteriaNotSupportedError):
        eventstore.visit_events(criteria, collector)
    assert not collector.records
