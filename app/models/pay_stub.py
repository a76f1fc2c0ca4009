from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from app.database import Base


class PayStub(Base):
    __tablename__ = "pay_stubs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, nullable=False, index=True)
    payroll_run_id = Column(
        String,
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id = Column(Integer, nullable=False, index=True)

    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    regular_hours = Column(Numeric(10, 4), nullable=False)
    overtime_hours = Column(Numeric(10, 4), nullable=False)
    total_hours = Column(Numeric(10, 4), nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    gross_pay = Column(Numeric(12, 2), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_pay_stubs_run_employee"),
    )


class PayStubEntry(Base):
    __tablename__ = "pay_stub_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pay_stub_id = Column(
        Integer,
        ForeignKey("pay_stubs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date = Column(Date, nullable=False)
    regular_hours = Column(Numeric(10, 4), nullable=False)
    overtime_hours = Column(Numeric(10, 4), nullable=False)
    gross_pay = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("pay_stub_id", "work_date", name="uq_pay_stub_entries_stub_day"),
    )
