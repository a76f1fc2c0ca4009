from app.models.employee import Employee
from app.models.employee_schedule import EmployeeSchedule
from app.models.pay_stub import PayStub, PayStubEntry
from app.models.payroll_run import PayrollRun
from app.models.payroll_run_line import PayrollRunLine
from app.models.payroll_settings import PayrollSettings
from app.models.time_entry import TimeEntry
from app.models.time_entry_adjustment import TimeEntryAdjustment

__all__ = [
    "Employee",
    "EmployeeSchedule",
    "PayStub",
    "PayStubEntry",
    "PayrollRun",
    "PayrollRunLine",
    "PayrollSettings",
    "TimeEntry",
    "TimeEntryAdjustment",
]
