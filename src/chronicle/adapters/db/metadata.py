"""Shared SQLAlchemy `MetaData` objects with a naming convention.

Event tables are built per store (the table name is configurable), so this
module exposes both the global `metadata` used by Alembic and a factory for
private metadata objects. Both share the same naming convention so that
constraints and indexes receive deterministic names.

Naming convention:
    - Indexes:       ix_<table>_<col...>
    - Unique:        uq_<table>_<col...>
    - Check:         ck_<table>_<constraint_name>
    - Foreign keys:  fk_<table>_<col...>_<reftable>
    - Primary key:   pk_<table>
"""

from sqlalchemy import MetaData

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def make_metadata() -> MetaData:
    """Return a fresh `MetaData` carrying the CHRONICLE naming convention."""
    return MetaData(naming_convention=NAMING_CONVENTION)


#: Global metadata targeted by Alembic.
metadata = make_metadata()
