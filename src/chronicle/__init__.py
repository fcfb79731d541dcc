"""CHRONICLE

An append-only event-stream store on top of a relational database.
Domain events are persisted per aggregate and replayed in order, with
optimistic concurrency enforced by the database's unique constraints.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
