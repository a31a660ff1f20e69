"""initial schema

Revision ID: 0001
Revises: 
Create Date: 2025-05-01 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("creator_name", sa.Text(), nullable=False),
        sa.Column("default_start_time", sa.Text()),
        sa.Column("default_end_time", sa.Text()),
        sa.Column("selected_date", sa.Text()),
        sa.Column("start_time", sa.Text()),
        sa.Column("end_time", sa.Text()),
        sa.Column("participants", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("participants_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "date_options",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Text(), nullable=False),
        sa.Column("start_time", sa.Text(), nullable=False),
        sa.Column("end_time", sa.Text(), nullable=False),
    )

    op.create_table(
        "attendances",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "attendance_responses",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "attendance_id",
            sa.BigInteger(),
            sa.ForeignKey("attendances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "date_option_id",
            sa.BigInteger(),
            sa.ForeignKey("date_options.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "status in ('available','maybe','unavailable')",
            name="attendance_responses_status_check",
        ),
    )

    # is_shared_with_all допускает NULL: так хранятся старые строки без флага.
    op.create_table(
        "expenses",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("payer_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("participants", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("is_shared_with_all", sa.Boolean()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="expenses_amount_positive"),
    )

    op.create_index("idx_date_options_event", "date_options", ["event_id"])
    op.create_index("idx_attendances_event", "attendances", ["event_id"])
    op.create_index("idx_attendance_responses_attendance", "attendance_responses", ["attendance_id"])
    op.create_index("idx_expenses_event", "expenses", ["event_id"])


def downgrade() -> None:
    op.drop_index("idx_expenses_event", table_name="expenses")
    op.drop_index("idx_attendance_responses_attendance", table_name="attendance_responses")
    op.drop_index("idx_attendances_event", table_name="attendances")
    op.drop_index("idx_date_options_event", table_name="date_options")

    op.drop_table("expenses")
    op.drop_table("attendance_responses")
    op.drop_table("attendances")
    op.drop_table("date_options")
    op.drop_table("events")
