"""Add reconciled work days, assigned shifts and holidays

Revision ID: 0002_work_days_and_rosters
Revises: 0001_initial
Create Date: 2026-10-19 01:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_work_days_and_rosters"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

work_day_status = postgresql.ENUM(
    "COMPLETE",
    "MISSING_IN",
    "MISSING_OUT",
    "LATE",
    "OVERTIME",
    "ANOMALOUS",
    name="work_day_status",
    create_type=False,
)
holiday_type = postgresql.ENUM(
    "PUBLIC",
    "COMPANY",
    "SPECIAL",
    name="holiday_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    work_day_status.create(bind, checkfirst=True)
    holiday_type.create(bind, checkfirst=True)

    op.create_table(
        "employee_shifts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("shift_name", sa.String(length=100), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.employee_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "day_of_week", name="uq_employee_shifts_employee_day"),
    )
    op.create_index(op.f("ix_employee_shifts_employee_id"), "employee_shifts", ["employee_id"], unique=False)

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("type", holiday_type, nullable=False, server_default=sa.text("'PUBLIC'")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_holidays_start_date"), "holidays", ["start_date"], unique=False)

    op.create_table(
        "work_days",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", work_day_status, nullable=False),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("worked_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("matched_shift_id", sa.String(length=64), nullable=True),
        sa.Column("matched_shift_name", sa.String(length=100), nullable=True),
        sa.Column("raw_scan_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("flags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("anomalous_scans", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "work_date", name="uq_work_days_employee_date"),
    )
    op.create_index(op.f("ix_work_days_employee_id"), "work_days", ["employee_id"], unique=False)
    op.create_index(op.f("ix_work_days_work_date"), "work_days", ["work_date"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_work_days_work_date"), table_name="work_days")
    op.drop_index(op.f("ix_work_days_employee_id"), table_name="work_days")
    op.drop_table("work_days")
    op.drop_index(op.f("ix_holidays_start_date"), table_name="holidays")
    op.drop_table("holidays")
    op.drop_index(op.f("ix_employee_shifts_employee_id"), table_name="employee_shifts")
    op.drop_table("employee_shifts")

    bind = op.get_bind()
    holiday_type.drop(bind, checkfirst=True)
    work_day_status.drop(bind, checkfirst=True)
