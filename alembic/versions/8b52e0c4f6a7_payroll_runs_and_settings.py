"""payroll runs and settings

Revision ID: 8b52e0c4f6a7
Revises: 3c1f7a2d9e10
Create Date: 2026-03-04 15:40:07.915622

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8b52e0c4f6a7"
down_revision: Union[str, Sequence[str], None] = "3c1f7a2d9e10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "payroll_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("period_start_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("period_end_day", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_generate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_generated_end_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("period_start_day BETWEEN 0 AND 6", name="ck_payroll_settings_start_day"),
        sa.CheckConstraint("period_end_day BETWEEN 0 AND 6", name="ck_payroll_settings_end_day"),
    )
    op.create_index("ix_payroll_settings_company_id", "payroll_settings", ["company_id"], unique=True)

    op.create_table(
        "payroll_run",
        sa.Column("payroll_run_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("total_gross_pay", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("finalized_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("status in ('draft','finalized')", name="ck_payroll_run_status_valid"),
        sa.CheckConstraint("period_start <= period_end", name="ck_payroll_run_period_order"),
        sa.CheckConstraint("total_gross_pay >= 0", name="ck_payroll_run_total_nonnegative"),
    )
    op.create_index("ix_payroll_run_company_id", "payroll_run", ["company_id"])
    op.create_index("ix_payroll_run_company_period", "payroll_run", ["company_id", "period_start", "period_end"])

    op.create_table(
        "payroll_run_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column(
            "payroll_run_id",
            sa.String(),
            sa.ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("total_regular_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("total_overtime_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("hourly_rate_snapshot", sa.Numeric(10, 2), nullable=False),
        sa.Column("overtime_rate_multiplier", sa.Numeric(4, 2), nullable=False),
        sa.Column("regular_pay", sa.Numeric(12, 2), nullable=False),
        sa.Column("overtime_pay", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_gross_pay", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_run_lines_run_employee"),
        sa.CheckConstraint(
            "total_regular_hours >= 0 AND total_overtime_hours >= 0",
            name="ck_payroll_run_lines_hours_nonnegative",
        ),
        sa.CheckConstraint(
            "regular_pay >= 0 AND overtime_pay >= 0 AND total_gross_pay >= 0",
            name="ck_payroll_run_lines_pay_nonnegative",
        ),
    )
    op.create_index("ix_payroll_run_lines_company_id", "payroll_run_lines", ["company_id"])
    op.create_index("ix_payroll_run_lines_payroll_run_id", "payroll_run_lines", ["payroll_run_id"])
    op.create_index("ix_payroll_run_lines_employee_id", "payroll_run_lines", ["employee_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("payroll_run_lines")
    op.drop_table("payroll_run")
    op.drop_table("payroll_settings")
