import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, Numeric, String
from sqlalchemy.schema import Index

from app.database import Base

RUN_STATUS_DRAFT = "draft"
RUN_STATUS_FINALIZED = "finalized"


class PayrollRun(Base):
    __tablename__ = "payroll_run"

    payroll_run_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(Integer, nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=RUN_STATUS_DRAFT)
    total_gross_pay = Column(Numeric(12, 2), nullable=False)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    finalized_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("status in ('draft','finalized')", name="ck_payroll_run_status_valid"),
        CheckConstraint("period_start <= period_end", name="ck_payroll_run_period_order"),
        CheckConstraint("total_gross_pay >= 0", name="ck_payroll_run_total_nonnegative"),
        Index("ix_payroll_run_company_period", "company_id", "period_start", "period_end"),
    )
