from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CreatePayrollRunRequest(BaseModel):
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self


class PayrollRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: str
    company_id: int
    period_start: date
    period_end: date
    status: str
    total_gross_pay: Decimal
    created_by: Optional[str]
    created_at: datetime
    finalized_at: Optional[datetime]


class PayrollRunListRow(PayrollRunResponse):
    employee_count: int = 0


class PayrollRunsResponse(BaseModel):
    limit: int
    offset: int
    rows: List[PayrollRunListRow]


class PayrollRunLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    hourly_rate_snapshot: Decimal
    overtime_rate_multiplier: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    total_gross_pay: Decimal


class CreatePayrollRunResponse(BaseModel):
    payroll_run: PayrollRunResponse
    lines: List[PayrollRunLineResponse]
    employee_count: int
    time_entries_count: int


class ConsumedEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time_entry_id: str
    employee_id: int
    clock_in_approved_at: datetime
    clock_out_approved_at: datetime
    regular_hours: Decimal
    overtime_hours: Decimal
    gross_pay: Decimal


class PayrollRunDetailResponse(BaseModel):
    payroll_run: PayrollRunResponse
    lines: List[PayrollRunLineResponse]
    time_entries: List[ConsumedEntryResponse]


class PayStubEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    work_date: date
    regular_hours: Decimal
    overtime_hours: Decimal
    gross_pay: Decimal


class PayStubResponse(BaseModel):
    id: int
    payroll_run_id: str
    employee_id: int
    period_start: date
    period_end: date
    regular_hours: Decimal
    overtime_hours: Decimal
    total_hours: Decimal
    hourly_rate: Decimal
    gross_pay: Decimal
    entries: List[PayStubEntryResponse] = Field(default_factory=list)


class PayrollSettingsRequest(BaseModel):
    period_start_day: int = Field(..., ge=0, le=6)
    period_end_day: int = Field(..., ge=0, le=6)
    auto_generate: bool = False


class PayrollSettingsResponse(BaseModel):
    period_start_day: int
    period_end_day: int
    auto_generate: bool
    last_generated_end_date: Optional[date] = None


class PayrollSummaryResponse(BaseModel):
    period_start: date
    period_end: date
    period_complete: bool
    status: str
    approved_hours: Decimal
    approved_entries: int
    pending_entries: int
    employees_with_hours: int
    existing_run_id: Optional[str] = None
    existing_run_status: Optional[str] = None
