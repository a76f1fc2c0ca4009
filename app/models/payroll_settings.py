from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer

from app.database import Base

DEFAULT_PERIOD_START_DAY = 1  # Monday
DEFAULT_PERIOD_END_DAY = 0  # Sunday


class PayrollSettings(Base):
    __tablename__ = "payroll_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, nullable=False, unique=True, index=True)

    period_start_day = Column(Integer, nullable=False, default=DEFAULT_PERIOD_START_DAY)
    period_end_day = Column(Integer, nullable=False, default=DEFAULT_PERIOD_END_DAY)
    auto_generate = Column(Boolean, nullable=False, default=False)
    last_generated_end_date = Column(Date, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("period_start_day BETWEEN 0 AND 6", name="ck_payroll_settings_start_day"),
        CheckConstraint("period_end_day BETWEEN 0 AND 6", name="ck_payroll_settings_end_day"),
    )
