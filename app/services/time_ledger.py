import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyClockedIn,
    AlreadyDecided,
    Conflict,
    InvalidOrder,
    LockedByPayroll,
    NoOpenEntry,
    NotFound,
    PayrollError,
    ValidationError,
)
from app.core.timeutil import as_naive_utc, isoformat_or_none, utcnow
from app.database import SessionLocal
from app.models.employee import Employee
from app.models.employee_schedule import EmployeeSchedule
from app.models.time_entry import TimeEntry
from app.models.time_entry_adjustment import TimeEntryAdjustment

logger = logging.getLogger(__name__)

STATUS_PENDING_CLOCK_IN = "pending_clock_in"
STATUS_PENDING_APPROVAL = "pending_approval"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

DECIDED_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)

DEFAULT_ADJUSTMENT_REASON = "Manual adjustment"


def _open_entries_query(db: Session, company_id: int, employee_id: int):
    return db.query(TimeEntry).filter(
        TimeEntry.company_id == company_id,
        TimeEntry.employee_id == employee_id,
        TimeEntry.clock_out_reported_at.is_(None),
        TimeEntry.status != STATUS_REJECTED,
    )


def get_open_entry(db: Session, company_id: int, employee_id: int) -> Optional[TimeEntry]:
    return (
        _open_entries_query(db, company_id, employee_id)
        .order_by(TimeEntry.clock_in_reported_at.desc())
        .first()
    )


def get_entry(db: Session, company_id: int, time_entry_id: str) -> TimeEntry:
    entry = (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.time_entry_id == str(time_entry_id),
        )
        .one_or_none()
    )
    if entry is None:
        raise NotFound("Time entry not found", time_entry_id=str(time_entry_id))
    return entry


def _same_day_schedule_id(db: Session, company_id: int, employee_id: int, now: datetime) -> Optional[int]:
    day_start = datetime.combine(now.date(), time.min)
    day_end = day_start + timedelta(days=1)
    schedule = (
        db.query(EmployeeSchedule)
        .filter(
            EmployeeSchedule.company_id == company_id,
            EmployeeSchedule.employee_id == employee_id,
            EmployeeSchedule.status == "scheduled",
            EmployeeSchedule.start_planned >= day_start,
            EmployeeSchedule.start_planned < day_end,
        )
        .order_by(EmployeeSchedule.start_planned.asc())
        .first()
    )
    return None if schedule is None else schedule.id


def clock_in(
    company_id: int,
    employee_id: int,
    now: Optional[datetime] = None,
    schedule_id: Optional[int] = None,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    """
    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()

    try:
        open_entries = (
            _open_entries_query(db, company_id, employee_id)
            .order_by(TimeEntry.clock_in_reported_at.desc())
            .all()
        )
        if open_entries:
            raise AlreadyClockedIn(
                "Already clocked in",
                clock_in_at=isoformat_or_none(open_entries[0].clock_in_reported_at),
                open_entries_count=len(open_entries),
            )

        if schedule_id is None:
            schedule_id = _same_day_schedule_id(db, company_id, employee_id, now)

        time_entry = TimeEntry(
            time_entry_id=str(uuid4()),
            company_id=company_id,
            employee_id=employee_id,
            schedule_id=schedule_id,
            clock_in_reported_at=now,
            status=STATUS_PENDING_CLOCK_IN,
        )
        db.add(time_entry)

        # uq_time_entries_open closes the window between the check above and this insert.
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyClockedIn("Already clocked in", clock_in_at=None, open_entries_count=1) from exc

        db.refresh(time_entry)

        if owns_db:
            db.commit()

        return time_entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def clock_out(
    company_id: int,
    employee_id: int,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    """
    Clock-out always sends the entry back to pending_approval, even when its
    clock-in was already approved.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()

    try:
        open_entry = get_open_entry(db, company_id, employee_id)
        if open_entry is None:
            raise NoOpenEntry("Not clocked in - no active time entry found")
        _ensure_unlocked(open_entry)

        open_entry.clock_out_reported_at = now
        open_entry.status = STATUS_PENDING_APPROVAL

        db.flush()
        db.refresh(open_entry)

        if owns_db:
            db.commit()

        return open_entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def _ensure_unlocked(entry: TimeEntry) -> None:
    if entry.payroll_run_id is not None:
        raise LockedByPayroll(
            "Cannot edit time entries already in payroll",
            time_entry_id=entry.time_entry_id,
            payroll_run_id=entry.payroll_run_id,
        )


def _ensure_undecided(entry: TimeEntry) -> None:
    if entry.status in DECIDED_STATUSES:
        raise AlreadyDecided(
            f"Time entry has already been {entry.status}",
            time_entry_id=entry.time_entry_id,
            status=entry.status,
        )


def _decide(db: Session, entry: TimeEntry, values: dict) -> TimeEntry:
    # Conditional update: a concurrent decision or payroll run makes this match zero rows.
    updated = (
        db.query(TimeEntry)
        .filter(
            TimeEntry.time_entry_id == entry.time_entry_id,
            TimeEntry.company_id == entry.company_id,
            TimeEntry.status.notin_(DECIDED_STATUSES),
            TimeEntry.payroll_run_id.is_(None),
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.refresh(entry)
        _ensure_unlocked(entry)
        raise AlreadyDecided(
            f"Time entry has already been {entry.status}",
            time_entry_id=entry.time_entry_id,
            status=entry.status,
        )
    db.flush()
    db.refresh(entry)
    return entry


def _approve_entry(
    db: Session,
    entry: TimeEntry,
    actor_id: str,
    now: datetime,
    clock_in_approved_at: Optional[datetime] = None,
    clock_out_approved_at: Optional[datetime] = None,
    edit_reason: Optional[str] = None,
) -> TimeEntry:
    _ensure_unlocked(entry)
    _ensure_undecided(entry)

    approved_in = as_naive_utc(clock_in_approved_at) or entry.clock_in_reported_at
    values = {
        "status": STATUS_APPROVED,
        "clock_in_approved_at": approved_in,
        "approved_by": str(actor_id),
        "approved_at": now,
    }

    if entry.clock_out_reported_at is not None:
        approved_out = as_naive_utc(clock_out_approved_at) or entry.clock_out_reported_at
        if approved_out <= approved_in:
            raise InvalidOrder(
                "Clock out time must be after clock in time",
                clock_in_approved_at=approved_in.isoformat(),
                clock_out_approved_at=approved_out.isoformat(),
            )
        values["clock_out_approved_at"] = approved_out

    if edit_reason:
        values["edit_reason"] = edit_reason

    return _decide(db, entry, values)


def approve(
    company_id: int,
    time_entry_id: str,
    actor_id: str,
    clock_in_approved_at: Optional[datetime] = None,
    clock_out_approved_at: Optional[datetime] = None,
    edit_reason: Optional[str] = None,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()

    try:
        entry = get_entry(db, company_id, time_entry_id)
        entry = _approve_entry(
            db,
            entry,
            actor_id,
            now,
            clock_in_approved_at=clock_in_approved_at,
            clock_out_approved_at=clock_out_approved_at,
            edit_reason=edit_reason,
        )

        if owns_db:
            db.commit()

        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def reject(
    company_id: int,
    time_entry_id: str,
    actor_id: str,
    reason: str,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()

    try:
        if reason is None or not reason.strip():
            raise ValidationError("Rejection reason is required", field="edit_reason")

        entry = get_entry(db, company_id, time_entry_id)
        _ensure_unlocked(entry)
        _ensure_undecided(entry)
        entry = _decide(
            db,
            entry,
            {
                "status": STATUS_REJECTED,
                "approved_by": str(actor_id),
                "approved_at": now,
                "edit_reason": reason.strip(),
            },
        )

        if owns_db:
            db.commit()

        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


@dataclass(frozen=True)
class BulkApproveItem:
    time_entry_id: str
    ok: bool
    error_kind: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BulkApproveResult:
    results: List[BulkApproveItem] = field(default_factory=list)

    @property
    def approved_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def bulk_approve(
    company_id: int,
    time_entry_ids: Sequence[str],
    actor_id: str,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> BulkApproveResult:
    """Approve each entry at its reported times; failures are reported per id."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()
    ids = [str(i) for i in time_entry_ids]

    try:
        rows = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == int(company_id),
                TimeEntry.time_entry_id.in_(ids),
            )
            .all()
        )
        by_id = {r.time_entry_id: r for r in rows}
        result = BulkApproveResult()

        for entry_id in ids:
            entry = by_id.get(entry_id)
            try:
                if entry is None:
                    raise NotFound("Time entry not found")
                _ensure_undecided(entry)
                if entry.clock_out_reported_at is None:
                    raise ValidationError(f"Time entry {entry_id} is missing clock out time")
                _approve_entry(db, entry, actor_id, now)
            except PayrollError as exc:
                result.results.append(
                    BulkApproveItem(time_entry_id=entry_id, ok=False, error_kind=exc.kind, error=exc.message)
                )
                continue
            result.results.append(BulkApproveItem(time_entry_id=entry_id, ok=True))

        if owns_db:
            db.commit()

        logger.info(
            "Bulk approval completed",
            extra={
                "company_id": int(company_id),
                "approved_count": result.approved_count,
                "failed_count": result.failed_count,
            },
        )
        return result
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def adjust(
    company_id: int,
    time_entry_id: str,
    actor_id: str,
    clock_in_approved_at: datetime,
    clock_out_approved_at: datetime,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    """Manual correction of approved times, recorded in time_entry_adjustments first."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    now = as_naive_utc(now) or utcnow()
    new_in = as_naive_utc(clock_in_approved_at)
    new_out = as_naive_utc(clock_out_approved_at)

    try:
        if new_out <= new_in:
            raise InvalidOrder(
                "Clock out time must be after clock in time",
                clock_in_approved_at=new_in.isoformat(),
                clock_out_approved_at=new_out.isoformat(),
            )

        entry = get_entry(db, company_id, time_entry_id)
        _ensure_unlocked(entry)

        never_approved = entry.clock_in_approved_at is None
        db.add(
            TimeEntryAdjustment(
                company_id=entry.company_id,
                time_entry_id=entry.time_entry_id,
                original_clock_in=entry.clock_in_reported_at if never_approved else entry.clock_in_approved_at,
                original_clock_out=entry.clock_out_reported_at if never_approved else entry.clock_out_approved_at,
                new_clock_in=new_in,
                new_clock_out=new_out,
                reason=reason or DEFAULT_ADJUSTMENT_REASON,
                adjusted_by=str(actor_id),
                adjusted_at=now,
            )
        )

        entry.clock_in_approved_at = new_in
        entry.clock_out_approved_at = new_out
        if reason:
            entry.edit_reason = reason
        entry.status = STATUS_APPROVED
        if entry.approved_by is None:
            entry.approved_by = str(actor_id)
        if entry.approved_at is None:
            entry.approved_at = now

        try:
            db.flush()
        except IntegrityError as exc:
            raise Conflict(
                "Another open time entry exists for this employee",
                time_entry_id=entry.time_entry_id,
            ) from exc

        db.refresh(entry)

        if owns_db:
            db.commit()

        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def list_entries(
    db: Session,
    company_id: int,
    employee_id: Optional[int] = None,
    status: Optional[str] = None,
    clock_in_from: Optional[datetime] = None,
    clock_in_to: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[TimeEntry]:
    q = db.query(TimeEntry).filter(TimeEntry.company_id == int(company_id))

    if employee_id is not None:
        q = q.filter(TimeEntry.employee_id == int(employee_id))
    if status is not None:
        q = q.filter(TimeEntry.status == str(status))
    if clock_in_from is not None:
        q = q.filter(TimeEntry.clock_in_reported_at >= as_naive_utc(clock_in_from))
    if clock_in_to is not None:
        q = q.filter(TimeEntry.clock_in_reported_at <= as_naive_utc(clock_in_to))

    return (
        q.order_by(TimeEntry.clock_in_reported_at.desc())
        .offset(int(offset))
        .limit(int(limit))
        .all()
    )


def list_adjustments(db: Session, company_id: int, time_entry_id: str) -> List[TimeEntryAdjustment]:
    entry = get_entry(db, company_id, time_entry_id)
    return (
        db.query(TimeEntryAdjustment)
        .filter(
            TimeEntryAdjustment.company_id == entry.company_id,
            TimeEntryAdjustment.time_entry_id == entry.time_entry_id,
        )
        .order_by(TimeEntryAdjustment.adjusted_at.asc(), TimeEntryAdjustment.id.asc())
        .all()
    )


def employee_for_actor(db: Session, company_id: int, actor_id: str) -> Employee:
    employee = (
        db.query(Employee)
        .filter(
            Employee.company_id == int(company_id),
            Employee.user_id == str(actor_id),
            Employee.is_active.is_(True),
        )
        .order_by(Employee.id.asc())
        .first()
    )
    if employee is None:
        raise NotFound("Employee record not found", user_id=str(actor_id))
    return employee
