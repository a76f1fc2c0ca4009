from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClockInRequest(BaseModel):
    schedule_id: Optional[int] = Field(default=None, ge=1)


class ApproveRequest(BaseModel):
    clock_in_approved_at: Optional[datetime] = None
    clock_out_approved_at: Optional[datetime] = None
    edit_reason: Optional[str] = None


class RejectRequest(BaseModel):
    edit_reason: str = Field(..., min_length=1)


class AdjustRequest(BaseModel):
    clock_in_approved_at: datetime
    clock_out_approved_at: datetime
    edit_reason: Optional[str] = None


class BulkApproveRequest(BaseModel):
    time_entry_ids: List[str] = Field(..., min_length=1)


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time_entry_id: str
    company_id: int
    employee_id: int
    schedule_id: Optional[int]
    status: str
    clock_in_reported_at: datetime
    clock_out_reported_at: Optional[datetime]
    clock_in_approved_at: Optional[datetime]
    clock_out_approved_at: Optional[datetime]
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    edit_reason: Optional[str]
    payroll_run_id: Optional[str]
    regular_hours: Optional[Decimal]
    overtime_hours: Optional[Decimal]
    gross_pay: Optional[Decimal]


class TimeEntryAdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    time_entry_id: str
    original_clock_in: Optional[datetime]
    original_clock_out: Optional[datetime]
    new_clock_in: datetime
    new_clock_out: datetime
    reason: str
    adjusted_by: str
    adjusted_at: datetime


class BulkApproveItemResponse(BaseModel):
    time_entry_id: str
    ok: bool
    error_kind: Optional[str] = None
    error: Optional[str] = None


class BulkApproveResponse(BaseModel):
    approved_count: int
    failed_count: int
    results: List[BulkApproveItemResponse]
