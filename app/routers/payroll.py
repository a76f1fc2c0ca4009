from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.authorization import Role, require_role
from app.database import SessionLocal
from app.deps.auth import ActiveContext
from app.models.payroll_run import PayrollRun
from app.models.payroll_run_line import PayrollRunLine
from app.models.time_entry import TimeEntry
from app.schemas.payroll import (
    ConsumedEntryResponse,
    CreatePayrollRunRequest,
    CreatePayrollRunResponse,
    PayrollRunDetailResponse,
    PayrollRunLineResponse,
    PayrollRunListRow,
    PayrollRunResponse,
    PayrollRunsResponse,
    PayrollSettingsRequest,
    PayrollSettingsResponse,
    PayrollSummaryResponse,
    PayStubEntryResponse,
    PayStubResponse,
)
from app.services import pay_stubs, payroll_autorun, payroll_runs

router = APIRouter(prefix="/payroll", tags=["Payroll"])


def stub_response(db, stub) -> PayStubResponse:
    return PayStubResponse(
        id=stub.id,
        payroll_run_id=stub.payroll_run_id,
        employee_id=stub.employee_id,
        period_start=stub.period_start,
        period_end=stub.period_end,
        regular_hours=stub.regular_hours,
        overtime_hours=stub.overtime_hours,
        total_hours=stub.total_hours,
        hourly_rate=stub.hourly_rate,
        gross_pay=stub.gross_pay,
        entries=[PayStubEntryResponse.model_validate(e) for e in pay_stubs.stub_entries(db, stub.id)],
    )


@router.post("/runs", response_model=CreatePayrollRunResponse)
def create_payroll_run(
    payload: CreatePayrollRunRequest,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        generated = payroll_runs.generate_run(
            company_id=ctx.company_id,
            period_start=payload.period_start,
            period_end=payload.period_end,
            actor_id=ctx.actor_id,
            db=db,
        )
        db.commit()
        return CreatePayrollRunResponse(
            payroll_run=PayrollRunResponse.model_validate(generated.run),
            lines=[PayrollRunLineResponse.model_validate(line) for line in generated.lines],
            employee_count=len(generated.lines),
            time_entries_count=generated.time_entries_count,
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/runs", response_model=PayrollRunsResponse)
def list_payroll_runs(
    status: Optional[str] = None,
    period_from: Optional[date] = None,
    period_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=1_000_000),
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        q = db.query(PayrollRun).filter(PayrollRun.company_id == ctx.company_id)
        if status is not None:
            q = q.filter(PayrollRun.status == status)
        if period_from is not None:
            q = q.filter(PayrollRun.period_end >= period_from)
        if period_to is not None:
            q = q.filter(PayrollRun.period_start <= period_to)

        runs = (
            q.order_by(PayrollRun.period_start.desc(), PayrollRun.created_at.desc())
            .offset(int(offset))
            .limit(int(limit))
            .all()
        )
        counts = payroll_runs.run_line_counts(db, [r.payroll_run_id for r in runs])

        rows = []
        for r in runs:
            row = PayrollRunListRow.model_validate(r)
            row.employee_count = counts.get(r.payroll_run_id, 0)
            rows.append(row)
        return PayrollRunsResponse(limit=int(limit), offset=int(offset), rows=rows)
    finally:
        db.close()


@router.get("/runs/{payroll_run_id}", response_model=PayrollRunDetailResponse)
def get_payroll_run(
    payroll_run_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        run = payroll_runs.get_run(db, ctx.company_id, payroll_run_id)
        lines = (
            db.query(PayrollRunLine)
            .filter(PayrollRunLine.payroll_run_id == run.payroll_run_id)
            .order_by(PayrollRunLine.employee_id.asc())
            .all()
        )
        entries = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == ctx.company_id,
                TimeEntry.payroll_run_id == run.payroll_run_id,
            )
            .order_by(TimeEntry.employee_id.asc(), TimeEntry.clock_in_approved_at.asc())
            .all()
        )
        return PayrollRunDetailResponse(
            payroll_run=PayrollRunResponse.model_validate(run),
            lines=[PayrollRunLineResponse.model_validate(line) for line in lines],
            time_entries=[ConsumedEntryResponse.model_validate(e) for e in entries],
        )
    finally:
        db.close()


@router.post("/runs/{payroll_run_id}/finalize", response_model=PayrollRunResponse)
def finalize_payroll_run(
    payroll_run_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        run = payroll_runs.finalize_run(ctx.company_id, payroll_run_id, db=db)
        db.commit()
        return PayrollRunResponse.model_validate(run)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete("/runs/{payroll_run_id}")
def delete_payroll_run(
    payroll_run_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        released = payroll_runs.delete_run(ctx.company_id, payroll_run_id, db=db)
        db.commit()
        return {"status": "deleted", "payroll_run_id": payroll_run_id, "released_entries": released}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/runs/{payroll_run_id}/paystubs")
def build_pay_stubs(
    payroll_run_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        stubs = pay_stubs.build_stubs(ctx.company_id, payroll_run_id, db=db)
        db.commit()
        return {"status": "created", "pay_stub_count": len(stubs)}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/runs/{payroll_run_id}/paystubs", response_model=list[PayStubResponse])
def list_pay_stubs(
    payroll_run_id: str,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        stubs = pay_stubs.list_stubs(db, ctx.company_id, payroll_run_id)
        return [stub_response(db, s) for s in stubs]
    finally:
        db.close()


@router.post("/auto-run")
def auto_run(
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        result = payroll_autorun.auto_run_tick(ctx.company_id, ctx.actor_id, db=db)
        db.commit()
        return result.to_dict()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/settings", response_model=PayrollSettingsResponse)
def get_payroll_settings(
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        return PayrollSettingsResponse(**payroll_autorun.get_settings(db, ctx.company_id))
    finally:
        db.close()


@router.put("/settings", response_model=PayrollSettingsResponse)
def put_payroll_settings(
    payload: PayrollSettingsRequest,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        payroll_autorun.update_settings(
            ctx.company_id,
            payload.period_start_day,
            payload.period_end_day,
            payload.auto_generate,
            db=db,
        )
        db.commit()
        return PayrollSettingsResponse(**payroll_autorun.get_settings(db, ctx.company_id))
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/current-summary", response_model=PayrollSummaryResponse)
def current_summary(
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        return PayrollSummaryResponse(**payroll_runs.payroll_summary(db, ctx.company_id))
    finally:
        db.close()
