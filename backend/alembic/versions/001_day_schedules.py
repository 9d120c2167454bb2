# backend/alembic/versions/001_day_schedules.py
"""Day schedules

Revision ID: 001_day_schedules
Revises:
Create Date: 2025-03-01 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import LargeBinary
from sqlalchemy.dialects.postgresql import BYTEA

# revision identifiers, used by Alembic.
revision: str = "001_day_schedules"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the per-day schedule table."""
    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    bits_type = BYTEA if dialect_name == "postgresql" else LargeBinary

    op.create_table(
        "day_schedules",
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("lecturer_id", sa.String(length=64), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        # 6 bytes each, bit i = half hour i of the day
        sa.Column("open_bits", bits_type(), nullable=False),
        sa.Column("booked_bits", bits_type(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("course_id", "lecturer_id", "day_date"),
    )
    op.create_index(
        "ix_day_schedules_lecturer_date",
        "day_schedules",
        ["lecturer_id", "day_date"],
    )


def downgrade() -> None:
    """Drop the per-day schedule table."""
    op.drop_index("ix_day_schedules_lecturer_date", table_name="day_schedules")
    op.drop_table("day_schedules")
