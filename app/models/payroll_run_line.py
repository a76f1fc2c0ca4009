from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class PayrollRunLine(Base):
    __tablename__ = "payroll_run_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, nullable=False, index=True)
    payroll_run_id = Column(
        String,
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id = Column(
        Integer,
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    total_regular_hours = Column(Numeric(10, 4), nullable=False)
    total_overtime_hours = Column(Numeric(10, 4), nullable=False)
    hourly_rate_snapshot = Column(Numeric(10, 2), nullable=False)
    overtime_rate_multiplier = Column(Numeric(4, 2), nullable=False)
    regular_pay = Column(Numeric(12, 2), nullable=False)
    overtime_pay = Column(Numeric(12, 2), nullable=False)
    total_gross_pay = Column(Numeric(12, 2), nullable=False)

    payroll_run = relationship("PayrollRun", backref="lines")

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_run_lines_run_employee"),
        CheckConstraint(
            "total_regular_hours >= 0 AND total_overtime_hours >= 0",
            name="ck_payroll_run_lines_hours_nonnegative",
        ),
        CheckConstraint(
            "regular_pay >= 0 AND overtime_pay >= 0 AND total_gross_pay >= 0",
            name="ck_payroll_run_lines_pay_nonnegative",
        ),
    )
