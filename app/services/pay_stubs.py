import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFound, StoreError
from app.core.timeutil import utcnow
from app.database import SessionLocal
from app.models.pay_stub import PayStub, PayStubEntry
from app.models.payroll_run_line import PayrollRunLine
from app.models.time_entry import TimeEntry
from app.services.payroll_math import allocate_employee
from app.services.payroll_runs import get_run

logger = logging.getLogger(__name__)


def _upsert_stub(db: Session, run, line: PayrollRunLine, allocation) -> PayStub:
    stub = (
        db.query(PayStub)
        .filter(
            PayStub.payroll_run_id == run.payroll_run_id,
            PayStub.employee_id == line.employee_id,
        )
        .one_or_none()
    )
    if stub is None:
        stub = PayStub(
            company_id=run.company_id,
            payroll_run_id=run.payroll_run_id,
            employee_id=line.employee_id,
        )
        db.add(stub)

    stub.period_start = run.period_start
    stub.period_end = run.period_end
    stub.regular_hours = allocation.split.regular
    stub.overtime_hours = allocation.split.overtime
    stub.total_hours = allocation.total_hours
    stub.hourly_rate = line.hourly_rate_snapshot
    stub.gross_pay = allocation.pay.total_gross_pay
    stub.updated_at = utcnow()
    db.flush()
    return stub


def build_stubs(
    company_id: int,
    payroll_run_id: str,
    *,
    db: Optional[Session] = None,
) -> List[PayStub]:
    """
    Derive one pay stub per run line with a per-day breakdown.

    Entries are re-allocated from the run's rate snapshots with the same
    routine the generator used, so a stub always matches its line. Calling
    this again replaces the existing breakdown.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        run = get_run(db, company_id, payroll_run_id)
        lines = (
            db.query(PayrollRunLine)
            .filter(PayrollRunLine.payroll_run_id == run.payroll_run_id)
            .order_by(PayrollRunLine.employee_id.asc())
            .all()
        )

        stubs = []
        for line in lines:
            entries = (
                db.query(TimeEntry)
                .filter(
                    TimeEntry.company_id == int(company_id),
                    TimeEntry.payroll_run_id == run.payroll_run_id,
                    TimeEntry.employee_id == line.employee_id,
                )
                .all()
            )
            allocation = allocate_employee(
                line.employee_id,
                entries,
                line.hourly_rate_snapshot,
                overtime_multiplier=line.overtime_rate_multiplier,
            )
            if (
                allocation.split.regular != line.total_regular_hours
                or allocation.split.overtime != line.total_overtime_hours
                or allocation.pay.total_gross_pay != line.total_gross_pay
            ):
                logger.error(
                    "Pay stub totals diverge from payroll run line",
                    extra={
                        "company_id": int(company_id),
                        "payroll_run_id": run.payroll_run_id,
                        "employee_id": line.employee_id,
                        "line_gross_pay": str(line.total_gross_pay),
                        "stub_gross_pay": str(allocation.pay.total_gross_pay),
                    },
                )
                raise StoreError(
                    "Consumed time entries no longer match the payroll run line",
                    payroll_run_id=run.payroll_run_id,
                    employee_id=line.employee_id,
                )

            stub = _upsert_stub(db, run, line, allocation)

            db.query(PayStubEntry).filter(PayStubEntry.pay_stub_id == stub.id).delete(
                synchronize_session=False
            )
            db.add_all(
                [
                    PayStubEntry(
                        pay_stub_id=stub.id,
                        work_date=work_date,
                        regular_hours=regular,
                        overtime_hours=overtime,
                        gross_pay=gross,
                    )
                    for work_date, (regular, overtime, gross) in allocation.daily_totals().items()
                ]
            )
            db.flush()
            stubs.append(stub)

        if owns_db:
            db.commit()

        logger.info(
            "Pay stubs built",
            extra={
                "company_id": int(company_id),
                "payroll_run_id": run.payroll_run_id,
                "pay_stub_count": len(stubs),
            },
        )
        return stubs
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def stub_entries(db: Session, pay_stub_id: int) -> List[PayStubEntry]:
    return (
        db.query(PayStubEntry)
        .filter(PayStubEntry.pay_stub_id == int(pay_stub_id))
        .order_by(PayStubEntry.work_date.asc())
        .all()
    )


def list_stubs(db: Session, company_id: int, payroll_run_id: str) -> List[PayStub]:
    run = get_run(db, company_id, payroll_run_id)
    return (
        db.query(PayStub)
        .filter(PayStub.payroll_run_id == run.payroll_run_id)
        .order_by(PayStub.employee_id.asc())
        .all()
    )


def get_stub(db: Session, company_id: int, pay_stub_id: int) -> PayStub:
    stub = (
        db.query(PayStub)
        .filter(PayStub.company_id == int(company_id), PayStub.id == int(pay_stub_id))
        .one_or_none()
    )
    if stub is None:
        raise NotFound("Pay stub not found", pay_stub_id=int(pay_stub_id))
    return stub


def employee_stubs(db: Session, company_id: int, employee_id: int) -> List[PayStub]:
    return (
        db.query(PayStub)
        .filter(PayStub.company_id == int(company_id), PayStub.employee_id == int(employee_id))
        .order_by(PayStub.period_end.desc(), PayStub.id.desc())
        .all()
    )
