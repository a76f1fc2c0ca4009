from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.authorization import Role, require_role
from app.database import SessionLocal
from app.deps.auth import ActiveContext
from app.schemas.time_entry import (
    AdjustRequest,
    ApproveRequest,
    BulkApproveItemResponse,
    BulkApproveRequest,
    BulkApproveResponse,
    ClockInRequest,
    RejectRequest,
    TimeEntryAdjustmentResponse,
    TimeEntryResponse,
)
from app.services import time_ledger

router = APIRouter(
    prefix="/time-entries",
    tags=["Time Entries"],
)


@router.post("/clock-in", response_model=TimeEntryResponse, status_code=201)
def clock_in_endpoint(
    payload: Optional[ClockInRequest] = None,
    ctx: ActiveContext = Depends(require_role(Role.EMPLOYEE)),
):
    db = SessionLocal()
    try:
        employee = time_ledger.employee_for_actor(db, ctx.company_id, ctx.actor_id)
        entry = time_ledger.clock_in(
            company_id=ctx.company_id,
            employee_id=employee.id,
            schedule_id=None if payload is None else payload.schedule_id,
            db=db,
        )
        db.commit()
        return TimeEntryResponse.model_validate(entry)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/clock-out", response_model=TimeEntryResponse)
def clock_out_endpoint(
    ctx: ActiveContext = Depends(require_role(Role.EMPLOYEE)),
):
    db = SessionLocal()
    try:
        employee = time_ledger.employee_for_actor(db, ctx.company_id, ctx.actor_id)
        entry = time_ledger.clock_out(
            company_id=ctx.company_id,
            employee_id=employee.id,
            db=db,
        )
        db.commit()
        return TimeEntryResponse.model_validate(entry)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/me", response_model=list[TimeEntryResponse])
def my_time_entries(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    ctx: ActiveContext = Depends(require_role(Role.EMPLOYEE)),
):
    db = SessionLocal()
    try:
        employee = time_ledger.employee_for_actor(db, ctx.company_id, ctx.actor_id)
        rows = time_ledger.list_entries(
            db,
            ctx.company_id,
            employee_id=employee.id,
            limit=limit,
            offset=offset,
        )
        return [TimeEntryResponse.model_validate(r) for r in rows]
    finally:
        db.close()


@router.get("", response_model=list[TimeEntryResponse])
def list_time_entries(
    employee_id: Optional[int] = None,
    status: Optional[str] = None,
    clock_in_from: Optional[datetime] = None,
    clock_in_to: Optional[datetime] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        rows = time_ledger.list_entries(
            db,
            ctx.company_id,
            employee_id=employee_id,
            status=status,
            clock_in_from=clock_in_from,
            clock_in_to=clock_in_to,
            limit=limit,
            offset=offset,
        )
        return [TimeEntryResponse.model_validate(r) for r in rows]
    finally:
        db.close()


@router.post("/bulk-approve", response_model=BulkApproveResponse)
def bulk_approve_endpoint(
    payload: BulkApproveRequest,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        result = time_ledger.bulk_approve(
            company_id=ctx.company_id,
            time_entry_ids=payload.time_entry_ids,
            actor_id=ctx.actor_id,
            db=db,
        )
        db.commit()
        return BulkApproveResponse(
            approved_count=result.approved_count,
            failed_count=result.failed_count,
            results=[
                BulkApproveItemResponse(
                    time_entry_id=r.time_entry_id,
                    ok=r.ok,
                    error_kind=r.error_kind,
                    error=r.error,
                )
                for r in result.results
            ],
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/{time_entry_id}", response_model=TimeEntryResponse)
def get_time_entry(
    time_entry_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        return TimeEntryResponse.model_validate(time_ledger.get_entry(db, ctx.company_id, time_entry_id))
    finally:
        db.close()


@router.get("/{time_entry_id}/adjustments", response_model=list[TimeEntryAdjustmentResponse])
def list_time_entry_adjustments(
    time_entry_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        rows = time_ledger.list_adjustments(db, ctx.company_id, time_entry_id)
        return [TimeEntryAdjustmentResponse.model_validate(r) for r in rows]
    finally:
        db.close()


@router.post("/{time_entry_id}/approve", response_model=TimeEntryResponse)
def approve_time_entry(
    time_entry_id: str,
    payload: Optional[ApproveRequest] = None,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    payload = payload or ApproveRequest()

    db = SessionLocal()
    try:
        entry = time_ledger.approve(
            company_id=ctx.company_id,
            time_entry_id=time_entry_id,
            actor_id=ctx.actor_id,
            clock_in_approved_at=payload.clock_in_approved_at,
            clock_out_approved_at=payload.clock_out_approved_at,
            edit_reason=payload.edit_reason,
            db=db,
        )
        db.commit()
        return TimeEntryResponse.model_validate(entry)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/{time_entry_id}/reject", response_model=TimeEntryResponse)
def reject_time_entry(
    time_entry_id: str,
    payload: RejectRequest,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        entry = time_ledger.reject(
            company_id=ctx.company_id,
            time_entry_id=time_entry_id,
            actor_id=ctx.actor_id,
            reason=payload.edit_reason,
            db=db,
        )
        db.commit()
        return TimeEntryResponse.model_validate(entry)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/{time_entry_id}/update", response_model=TimeEntryResponse)
def adjust_time_entry(
    time_entry_id: str,
    payload: AdjustRequest,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        entry = time_ledger.adjust(
            company_id=ctx.company_id,
            time_entry_id=time_entry_id,
            actor_id=ctx.actor_id,
            clock_in_approved_at=payload.clock_in_approved_at,
            clock_out_approved_at=payload.clock_out_approved_at,
            reason=payload.edit_reason,
            db=db,
        )
        db.commit()
        return TimeEntryResponse.model_validate(entry)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
