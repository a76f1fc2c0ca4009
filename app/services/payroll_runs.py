import logging
import zlib
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    Conflict,
    InvalidRunState,
    NoEligibleEntries,
    NotFound,
    PeriodNotComplete,
    StoreError,
    ValidationError,
)
from app.core.timeutil import utcnow
from app.database import SessionLocal, is_postgres
from app.models.employee import Employee
from app.models.pay_stub import PayStub, PayStubEntry
from app.models.payroll_run import RUN_STATUS_DRAFT, RUN_STATUS_FINALIZED, PayrollRun
from app.models.payroll_run_line import PayrollRunLine
from app.models.payroll_settings import DEFAULT_PERIOD_END_DAY, DEFAULT_PERIOD_START_DAY, PayrollSettings
from app.models.time_entry import TimeEntry
from app.services.payroll_math import (
    OVERTIME_MULTIPLIER,
    ZERO,
    EmployeeAllocation,
    allocate_employee,
    approved_hours,
    round_hours,
)
from app.services.payroll_periods import current_period, period_window
from app.services.time_ledger import STATUS_APPROVED, STATUS_PENDING_APPROVAL

logger = logging.getLogger(__name__)

_PAYROLL_LOCK_NAMESPACE = 4244


@dataclass(frozen=True)
class GeneratedRun:
    run: PayrollRun
    lines: List[PayrollRunLine]
    time_entries_count: int


def lock_company_payroll(db: Session, company_id: int) -> None:
    """Serialize run generation per company for the rest of the transaction (Postgres only)."""
    if not is_postgres(db):
        return
    key = zlib.crc32(str(int(company_id)).encode()) & 0x7FFFFFFF
    db.execute(
        text("select pg_advisory_xact_lock(:ns, :key)"),
        {"ns": _PAYROLL_LOCK_NAMESPACE, "key": key},
    )


def get_run(db: Session, company_id: int, payroll_run_id: str) -> PayrollRun:
    run = (
        db.query(PayrollRun)
        .filter(PayrollRun.company_id == int(company_id))
        .filter(PayrollRun.payroll_run_id == str(payroll_run_id))
        .one_or_none()
    )
    if run is None:
        raise NotFound("Payroll run not found", payroll_run_id=str(payroll_run_id))
    return run


def overlapping_runs(db: Session, company_id: int, period_start: date, period_end: date) -> List[PayrollRun]:
    return (
        db.query(PayrollRun)
        .filter(
            PayrollRun.company_id == int(company_id),
            PayrollRun.period_start <= period_end,
            PayrollRun.period_end >= period_start,
        )
        .order_by(PayrollRun.period_start.desc())
        .all()
    )


def eligible_entries(db: Session, company_id: int, period_start: date, period_end: date) -> List[TimeEntry]:
    window_start, window_end = period_window(period_start, period_end)
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.status == STATUS_APPROVED,
            TimeEntry.payroll_run_id.is_(None),
            TimeEntry.clock_out_reported_at.isnot(None),
            TimeEntry.clock_out_approved_at.isnot(None),
            TimeEntry.clock_in_approved_at >= window_start,
            TimeEntry.clock_in_approved_at < window_end,
        )
        .order_by(TimeEntry.employee_id.asc(), TimeEntry.clock_in_approved_at.asc())
        .all()
    )


def _allocate(db: Session, company_id: int, entries: List[TimeEntry]) -> List[EmployeeAllocation]:
    by_employee: "OrderedDict[int, List[TimeEntry]]" = OrderedDict()
    for entry in entries:
        by_employee.setdefault(int(entry.employee_id), []).append(entry)

    employees: Dict[int, Employee] = {
        e.id: e
        for e in db.query(Employee)
        .filter(Employee.company_id == int(company_id), Employee.id.in_(list(by_employee)))
        .all()
    }

    allocations = []
    for employee_id, employee_entries in by_employee.items():
        employee = employees.get(employee_id)
        if employee is None:
            logger.warning(
                "Skipping time entries for unknown employee",
                extra={"company_id": int(company_id), "employee_id": employee_id, "entries": len(employee_entries)},
            )
            continue
        allocations.append(allocate_employee(employee_id, employee_entries, employee.hourly_rate))
    return allocations


def generate_run(
    company_id: int,
    period_start: date,
    period_end: date,
    actor_id: str,
    today: Optional[date] = None,
    *,
    db: Optional[Session] = None,
) -> GeneratedRun:
    """
    Build a draft payroll run from approved, unconsumed time entries.

    Run, lines and entry consumption are written in one transaction. If db is
    provided the caller owns that transaction and must commit or roll back.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    if today is None:
        today = utcnow().date()

    try:
        if period_end < period_start:
            raise ValidationError("period_end must not be before period_start")

        lock_company_payroll(db, company_id)

        existing = overlapping_runs(db, company_id, period_start, period_end)
        if existing:
            raise Conflict(
                "A payroll run already exists for this period or overlaps with it",
                existing_runs=[r.payroll_run_id for r in existing],
            )

        if period_end >= today:
            raise PeriodNotComplete(
                "Cannot create payroll for a period that has not ended yet",
                period_end=period_end.isoformat(),
            )

        entries = eligible_entries(db, company_id, period_start, period_end)
        allocations = _allocate(db, company_id, entries) if entries else []
        if not allocations:
            raise NoEligibleEntries(
                "No eligible time entries found for this period",
                period_start=period_start.isoformat(),
                period_end=period_end.isoformat(),
            )

        entries_by_id = {e.time_entry_id: e for e in entries}
        consumed = 0

        try:
            run = PayrollRun(
                company_id=int(company_id),
                period_start=period_start,
                period_end=period_end,
                status=RUN_STATUS_DRAFT,
                total_gross_pay=sum((a.pay.total_gross_pay for a in allocations), Decimal("0.00")),
                created_by=str(actor_id),
            )
            db.add(run)
            db.flush()

            lines = [
                PayrollRunLine(
                    company_id=int(company_id),
                    payroll_run_id=run.payroll_run_id,
                    employee_id=a.employee_id,
                    total_regular_hours=a.split.regular,
                    total_overtime_hours=a.split.overtime,
                    hourly_rate_snapshot=a.hourly_rate,
                    overtime_rate_multiplier=a.overtime_multiplier,
                    regular_pay=a.pay.regular_pay,
                    overtime_pay=a.pay.overtime_pay,
                    total_gross_pay=a.pay.total_gross_pay,
                )
                for a in allocations
            ]
            db.add_all(lines)
            db.flush()

            for allocation in allocations:
                for share in allocation.entries:
                    entry = entries_by_id[share.time_entry_id]
                    entry.payroll_run_id = run.payroll_run_id
                    entry.regular_hours = share.regular_hours
                    entry.overtime_hours = share.overtime_hours
                    entry.gross_pay = share.gross_pay
                    consumed += 1
            db.flush()
        except SQLAlchemyError as exc:
            logger.exception(
                "Payroll run persistence failed",
                extra={
                    "company_id": int(company_id),
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                },
            )
            raise StoreError(
                "Failed to persist payroll run",
                period_start=period_start.isoformat(),
                period_end=period_end.isoformat(),
            ) from exc

        if owns_db:
            db.commit()

        logger.info(
            "Payroll run generated",
            extra={
                "company_id": int(company_id),
                "payroll_run_id": run.payroll_run_id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "lines_count": len(lines),
                "time_entries_count": consumed,
                "total_gross_pay": str(run.total_gross_pay),
            },
        )
        return GeneratedRun(run=run, lines=lines, time_entries_count=consumed)
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def finalize_run(
    company_id: int,
    payroll_run_id: str,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> PayrollRun:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        run = get_run(db, company_id, payroll_run_id)
        updated = (
            db.query(PayrollRun)
            .filter(
                PayrollRun.payroll_run_id == run.payroll_run_id,
                PayrollRun.status == RUN_STATUS_DRAFT,
            )
            .update(
                {"status": RUN_STATUS_FINALIZED, "finalized_at": now or utcnow(), "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise InvalidRunState("Payroll run is already finalized", payroll_run_id=run.payroll_run_id)

        db.flush()
        db.refresh(run)

        if owns_db:
            db.commit()

        logger.info(
            "Payroll run finalized",
            extra={"company_id": int(company_id), "payroll_run_id": run.payroll_run_id},
        )
        return run
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def delete_run(
    company_id: int,
    payroll_run_id: str,
    *,
    db: Optional[Session] = None,
) -> int:
    """Delete a draft run after releasing its time entries. Returns the released entry count."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        run = get_run(db, company_id, payroll_run_id)
        if run.status != RUN_STATUS_DRAFT:
            raise InvalidRunState("Cannot delete a finalized payroll run", payroll_run_id=run.payroll_run_id)

        released = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == int(company_id),
                TimeEntry.payroll_run_id == run.payroll_run_id,
            )
            .update(
                {
                    "payroll_run_id": None,
                    "regular_hours": None,
                    "overtime_hours": None,
                    "gross_pay": None,
                },
                synchronize_session=False,
            )
        )

        stub_ids = [
            s.id
            for s in db.query(PayStub.id).filter(PayStub.payroll_run_id == run.payroll_run_id).all()
        ]
        if stub_ids:
            db.query(PayStubEntry).filter(PayStubEntry.pay_stub_id.in_(stub_ids)).delete(
                synchronize_session=False
            )
            db.query(PayStub).filter(PayStub.id.in_(stub_ids)).delete(synchronize_session=False)

        db.query(PayrollRunLine).filter(PayrollRunLine.payroll_run_id == run.payroll_run_id).delete(
            synchronize_session=False
        )
        db.query(PayrollRun).filter(PayrollRun.payroll_run_id == run.payroll_run_id).delete(
            synchronize_session=False
        )
        db.flush()

        if owns_db:
            db.commit()

        logger.info(
            "Draft payroll run deleted",
            extra={
                "company_id": int(company_id),
                "payroll_run_id": str(payroll_run_id),
                "released_entries": int(released),
            },
        )
        return int(released)
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def run_line_counts(db: Session, payroll_run_ids: List[str]) -> Dict[str, int]:
    if not payroll_run_ids:
        return {}
    rows = (
        db.query(PayrollRunLine.payroll_run_id, func.count(PayrollRunLine.id))
        .filter(PayrollRunLine.payroll_run_id.in_(payroll_run_ids))
        .group_by(PayrollRunLine.payroll_run_id)
        .all()
    )
    return {run_id: int(count) for run_id, count in rows}


def payroll_summary(db: Session, company_id: int, today: Optional[date] = None) -> dict:
    """Status of the pay period currently in progress."""
    if today is None:
        today = utcnow().date()

    settings = (
        db.query(PayrollSettings)
        .filter(PayrollSettings.company_id == int(company_id))
        .one_or_none()
    )
    start_day = DEFAULT_PERIOD_START_DAY if settings is None else settings.period_start_day
    end_day = DEFAULT_PERIOD_END_DAY if settings is None else settings.period_end_day

    period_start, period_end = current_period(today, start_day, end_day)
    window_start, window_end = period_window(period_start, period_end)

    approved = eligible_entries(db, company_id, period_start, period_end)
    total_hours = ZERO
    employee_ids = set()
    for entry in approved:
        hours = approved_hours(entry)
        if hours > 0:
            total_hours += hours
            employee_ids.add(entry.employee_id)

    pending_count = (
        db.query(func.count(TimeEntry.time_entry_id))
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.status == STATUS_PENDING_APPROVAL,
            TimeEntry.payroll_run_id.is_(None),
            TimeEntry.clock_in_reported_at >= window_start,
            TimeEntry.clock_in_reported_at < window_end,
        )
        .scalar()
    )

    existing = overlapping_runs(db, company_id, period_start, period_end)
    existing_run = existing[0] if existing else None
    period_complete = period_end < today

    if existing_run is not None:
        status = "run_exists"
    elif not period_complete:
        status = "in_progress"
    elif total_hours == 0:
        status = "no_hours"
    elif pending_count:
        status = "pending_approval"
    else:
        status = "ready"

    return {
        "period_start": period_start,
        "period_end": period_end,
        "period_complete": period_complete,
        "status": status,
        "approved_hours": round_hours(total_hours),
        "approved_entries": len(approved),
        "pending_entries": int(pending_count or 0),
        "employees_with_hours": len(employee_ids),
        "existing_run_id": None if existing_run is None else existing_run.payroll_run_id,
        "existing_run_status": None if existing_run is None else existing_run.status,
    }
