"""Rooms and bookings tables.

Also the (room_id, status, check_in, check_out) index the availability
query relies on, and a partial index for the soft-delete prune job.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-05
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "001_initial.sql"


def upgrade() -> None:
    # exec_driver_sql: the file holds several statements
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bookings")
    op.execute("DROP TABLE IF EXISTS rooms")
