"""Exclusion constraint: active bookings of a room never overlap.

Second layer behind the room row lock taken by every booking write.
daterange('[)') gives the same half-open semantics as the application
check, so back-to-back stays (check_out == next check_in) are allowed.

Revision ID: 002_no_booking_overlap_constraint
Revises: 001_initial_schema
Create Date: 2026-10-05
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_no_booking_overlap_constraint"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_no_booking_overlap_constraint.sql"


def upgrade() -> None:
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS no_active_booking_overlap")
    # btree_gist stays installed; other indexes may use it.
