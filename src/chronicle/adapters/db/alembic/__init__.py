"""Alembic migration scripts for CHRONICLE."""
