"""Database wiring: engine factory, dialect helpers, metadata and migrations."""
