"""time entry ledger

Revision ID: 3c1f7a2d9e10
Revises:
Create Date: 2026-03-02 09:14:41.208311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1f7a2d9e10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_ENTRY_PREDICATE = "clock_out_reported_at IS NULL AND status <> 'rejected'"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_employees_id", "employees", ["id"])
    op.create_index("ix_employees_company_id", "employees", ["company_id"])
    op.create_index("ix_employees_user_id", "employees", ["user_id"])
    op.create_index("ix_employees_company_user", "employees", ["company_id", "user_id"])

    op.create_table(
        "employee_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_planned", sa.DateTime(), nullable=False),
        sa.Column("end_planned", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
    )
    op.create_index("ix_employee_schedules_id", "employee_schedules", ["id"])
    op.create_index("ix_employee_schedules_company_id", "employee_schedules", ["company_id"])
    op.create_index("ix_employee_schedules_employee_id", "employee_schedules", ["employee_id"])
    op.create_index(
        "ix_employee_schedules_employee_start",
        "employee_schedules",
        ["company_id", "employee_id", "start_planned"],
    )

    op.create_table(
        "time_entries",
        sa.Column("time_entry_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=True),
        sa.Column("clock_in_reported_at", sa.DateTime(), nullable=False),
        sa.Column("clock_out_reported_at", sa.DateTime(), nullable=True),
        sa.Column("clock_in_approved_at", sa.DateTime(), nullable=True),
        sa.Column("clock_out_approved_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("edit_reason", sa.Text(), nullable=True),
        sa.Column("payroll_run_id", sa.String(), nullable=True),
        sa.Column("regular_hours", sa.Numeric(10, 4), nullable=True),
        sa.Column("overtime_hours", sa.Numeric(10, 4), nullable=True),
        sa.Column("gross_pay", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status in ('pending_clock_in','pending_approval','approved','rejected')",
            name="ck_time_entries_status_valid",
        ),
    )
    op.create_index("ix_time_entries_time_entry_id", "time_entries", ["time_entry_id"])
    op.create_index("ix_time_entries_company_id", "time_entries", ["company_id"])
    op.create_index("ix_time_entries_employee_id", "time_entries", ["employee_id"])
    op.create_index("ix_time_entries_status", "time_entries", ["status"])
    op.create_index("ix_time_entries_payroll_run_id", "time_entries", ["payroll_run_id"])
    op.create_index(
        "ix_time_entries_company_eligibility",
        "time_entries",
        ["company_id", "status", "payroll_run_id", "clock_in_approved_at"],
    )
    op.create_index(
        "uq_time_entries_open",
        "time_entries",
        ["company_id", "employee_id"],
        unique=True,
        postgresql_where=sa.text(OPEN_ENTRY_PREDICATE),
        sqlite_where=sa.text(OPEN_ENTRY_PREDICATE),
    )

    op.create_table(
        "time_entry_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column(
            "time_entry_id",
            sa.String(),
            sa.ForeignKey("time_entries.time_entry_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("original_clock_in", sa.DateTime(), nullable=True),
        sa.Column("original_clock_out", sa.DateTime(), nullable=True),
        sa.Column("new_clock_in", sa.DateTime(), nullable=False),
        sa.Column("new_clock_out", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("adjusted_by", sa.String(), nullable=False),
        sa.Column("adjusted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_time_entry_adjustments_company_id", "time_entry_adjustments", ["company_id"])
    op.create_index("ix_time_entry_adjustments_time_entry_id", "time_entry_adjustments", ["time_entry_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("time_entry_adjustments")
    op.drop_index("uq_time_entries_open", table_name="time_entries")
    op.drop_table("time_entries")
    op.drop_table("employee_schedules")
    op.drop_table("employees")
