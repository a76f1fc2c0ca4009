from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String, Text, text
from sqlalchemy.schema import Index

from app.database import Base

OPEN_ENTRY_PREDICATE = "clock_out_reported_at IS NULL AND status <> 'rejected'"


class TimeEntry(Base):
    __tablename__ = "time_entries"

    time_entry_id = Column(String, primary_key=True, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    employee_id = Column(Integer, nullable=False, index=True)
    schedule_id = Column(Integer, nullable=True)

    clock_in_reported_at = Column(DateTime, nullable=False)
    clock_out_reported_at = Column(DateTime, nullable=True)
    clock_in_approved_at = Column(DateTime, nullable=True)
    clock_out_approved_at = Column(DateTime, nullable=True)

    status = Column(String, nullable=False, index=True)

    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    edit_reason = Column(Text, nullable=True)

    # Set once consumed by a payroll run; computed fields are null until then.
    payroll_run_id = Column(String, nullable=True, index=True)
    regular_hours = Column(Numeric(10, 4), nullable=True)
    overtime_hours = Column(Numeric(10, 4), nullable=True)
    gross_pay = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "status in ('pending_clock_in','pending_approval','approved','rejected')",
            name="ck_time_entries_status_valid",
        ),
        Index(
            "uq_time_entries_open",
            "company_id",
            "employee_id",
            unique=True,
            postgresql_where=text(OPEN_ENTRY_PREDICATE),
            sqlite_where=text(OPEN_ENTRY_PREDICATE),
        ),
        Index(
            "ix_time_entries_company_eligibility",
            "company_id",
            "status",
            "payroll_run_id",
            "clock_in_approved_at",
        ),
    )
