from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.schema import Index

from app.database import Base


class EmployeeSchedule(Base):
    __tablename__ = "employee_schedules"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    employee_id = Column(Integer, nullable=False, index=True)

    start_planned = Column(DateTime, nullable=False)
    end_planned = Column(DateTime, nullable=True)

    status = Column(String, nullable=False, default="scheduled")  # scheduled|cancelled|completed

    __table_args__ = (
        Index("ix_employee_schedules_employee_start", "company_id", "employee_id", "start_planned"),
    )
