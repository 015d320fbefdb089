"""Initial time attendance schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

audit_actor_type = postgresql.ENUM(
    "ADMIN",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("employee_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("last_name", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "attendance_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("io_type", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(op.f("ix_attendance_logs_employee_id"), "attendance_logs", ["employee_id"], unique=False)
    op.create_index(op.f("ix_attendance_logs_timestamp"), "attendance_logs", ["timestamp"], unique=False)

    op.create_table(
        "master_times",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("shift_name", sa.String(length=100), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("is_overnight", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("shift_name", name="uq_master_times_shift_name"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index(op.f("ix_audit_logs_ts_utc"), "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_logs_ts_utc"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("master_times")
    op.drop_index(op.f("ix_attendance_logs_timestamp"), table_name="attendance_logs")
    op.drop_index(op.f("ix_attendance_logs_employee_id"), table_name="attendance_logs")
    op.drop_table("attendance_logs")
    op.drop_table("employees")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
