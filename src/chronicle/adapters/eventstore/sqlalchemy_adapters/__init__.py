"""Defines the SQLAlchemy EventStore adapter package.

This package contains a SQLAlchemy Core implementation of the event store.
Events are stored durably in a relational table, and the table's unique
``(identifier, position)`` constraint arbitrates concurrent appends.
"""

from .eventstore import SqlAlchemyEventStore

__all__ = ["SqlAlchemyEventStore"]
