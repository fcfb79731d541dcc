"""Create the event table

Revision ID: 3f9a1c2d7e41
Revises:
Create Date: 2026-10-19

The table name and identifier mode are read from the environment
(CHRONICLE_EVENT_TABLE, CHRONICLE_BINARY_IDENTIFIERS) when the migration runs.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from chronicle import config
from chronicle.adapters.db.dialects import DialectName
from chronicle.adapters.eventstore.schema import (
    BIGINT_PK,
    RECORDED_AT_LENGTH,
    TYPE_LENGTH,
    identifier_type,
)

# deal with alembic stuff
# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7e41"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    dialect = DialectName.from_sqlalchemy(op.get_context())
    table = config.get_event_table_name()

    op.create_table(
        table,
        sa.Column(
            "id",
            BIGINT_PK,
            sa.Identity(always=False, start=1),
            nullable=False,
            comment="Global, monotonically increasing insertion sequence.",
        ),
        sa.Column(
            "identifier",
            identifier_type(config.use_binary_identifiers()),
            nullable=False,
            comment="Aggregate identifier (text, or 16-byte binary UUID).",
        ),
        sa.Column(
            "position",
            sa.Integer(),
            nullable=False,
            comment="Zero-based position of the event within its aggregate stream.",
        ),
        sa.Column(
            "payload",
            sa.Text(),
            nullable=False,
            comment="Serialized event payload (JSON text).",
        ),
        sa.Column(
            "metadata",
            sa.Text(),
            nullable=False,
            comment="Serialized event metadata (JSON text).",
        ),
        sa.Column(
            "recorded_at",
            sa.String(length=RECORDED_AT_LENGTH),
            nullable=False,
            comment="ISO-8601 UTC timestamp; sorts lexically in time order.",
        ),
        sa.Column(
            "type",
            sa.String(length=TYPE_LENGTH),
            nullable=False,
            comment="Event type tag.",
        ),
        sa.CheckConstraint(
            "position >= 0", name=op.f(f"ck_{table}_non_negative_position")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f(f"pk_{table}")),
        sa.UniqueConstraint(
            "identifier", "position", name=op.f(f"uq_{table}_identifier_position")
        ),
        comment="Append-only event log. One row per domain event.",
    )

    # ---- APPEND-ONLY ENFORCEMENT ----
    if dialect is DialectName.POSTGRES:
        op.execute(
            f"""
            CREATE OR REPLACE FUNCTION {table}_forbid_mod() RETURNS trigger
            LANGUAGE plpgsql AS $$
            BEGIN
              RAISE EXCEPTION '{table} is append-only; % not allowed', TG_OP
              USING ERRCODE = '0A000'; -- feature_not_supported
            END;
            $$;
            """
        )
        op.execute(
            f"""
            CREATE TRIGGER tr_{table}_append_only
            BEFORE UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION {table}_forbid_mod();
            """
        )
    else:
        op.execute(
            f"""
            CREATE TRIGGER tr_{table}_no_update
            BEFORE UPDATE ON {table}
            BEGIN
              SELECT RAISE(ABORT, '{table} is append-only; UPDATE not allowed');
            END;
            """
        )
        op.execute(
            f"""
            CREATE TRIGGER tr_{table}_no_delete
            BEFORE DELETE ON {table}
            BEGIN
              SELECT RAISE(ABORT, '{table} is append-only; DELETE not allowed');
            END;
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    dialect = DialectName.from_sqlalchemy(op.get_context())
    table = config.get_event_table_name()

    if dialect is DialectName.POSTGRES:
        op.execute(f"DROP TRIGGER IF EXISTS tr_{table}_append_only ON {table};")
        op.execute(f"DROP FUNCTION IF EXISTS {table}_forbid_mod();")
    else:
        op.execute(f"DROP TRIGGER IF EXISTS tr_{table}_no_delete;")
        op.execute(f"DROP TRIGGER IF EXISTS tr_{table}_no_update;")

    op.drop_table(table)
