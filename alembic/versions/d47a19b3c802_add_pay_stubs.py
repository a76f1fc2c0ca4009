"""add pay stubs

Revision ID: d47a19b3c802
Revises: 8b52e0c4f6a7
Create Date: 2026-03-09 11:02:55.470193

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "d47a19b3c802"
down_revision: Union[str, Sequence[str], None] = "8b52e0c4f6a7"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "pay_stubs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column(
            "payroll_run_id",
            sa.String(),
            sa.ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("regular_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("overtime_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("total_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("gross_pay", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("payroll_run_id", "employee_id", name="uq_pay_stubs_run_employee"),
    )
    op.create_index("ix_pay_stubs_company_id", "pay_stubs", ["company_id"])
    op.create_index("ix_pay_stubs_payroll_run_id", "pay_stubs", ["payroll_run_id"])
    op.create_index("ix_pay_stubs_employee_id", "pay_stubs", ["employee_id"])

    op.create_table(
        "pay_stub_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "pay_stub_id",
            sa.Integer(),
            sa.ForeignKey("pay_stubs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("regular_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("overtime_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("gross_pay", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint("pay_stub_id", "work_date", name="uq_pay_stub_entries_stub_day"),
    )
    op.create_index("ix_pay_stub_entries_pay_stub_id", "pay_stub_entries", ["pay_stub_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("pay_stub_entries")
    op.drop_table("pay_stubs")
