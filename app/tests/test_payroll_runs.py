from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    Conflict,
    InvalidRunState,
    LockedByPayroll,
    NoEligibleEntries,
    NotFound,
    PeriodNotComplete,
    StoreError,
    ValidationError,
)
from app.database import SessionLocal
from app.models.payroll_run import PayrollRun
from app.models.payroll_run_line import PayrollRunLine
from app.models.time_entry import TimeEntry
from app.services import payroll_runs, time_ledger

COMPANY_ID = 1
WEEK_START = date(2024, 3, 4)  # Monday
WEEK_END = date(2024, 3, 10)  # Sunday
AFTER_WEEK = date(2024, 3, 11)


def _at(day_offset: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 4 + day_offset, hour, minute)


def _generate(**kwargs):
    params = dict(
        company_id=COMPANY_ID,
        period_start=WEEK_START,
        period_end=WEEK_END,
        actor_id="manager-1",
        today=AFTER_WEEK,
    )
    params.update(kwargs)
    return payroll_runs.generate_run(**params)


def _entries_for_run(payroll_run_id: str):
    db = SessionLocal()
    try:
        return (
            db.query(TimeEntry)
            .filter(TimeEntry.payroll_run_id == payroll_run_id)
            .order_by(TimeEntry.clock_in_approved_at.asc())
            .all()
        )
    finally:
        db.close()


def test_end_to_end_clock_approve_and_generate(employee_factory):
    employee_id = employee_factory(hourly_rate="18.50")

    time_ledger.clock_in(COMPANY_ID, employee_id, now=_at(0, 9))
    time_ledger.clock_out(COMPANY_ID, employee_id, now=_at(0, 17))
    time_ledger.clock_in(COMPANY_ID, employee_id, now=_at(1, 9))
    time_ledger.clock_out(COMPANY_ID, employee_id, now=_at(1, 13))

    db = SessionLocal()
    try:
        ids = [e.time_entry_id for e in time_ledger.list_entries(db, COMPANY_ID, employee_id=employee_id)]
    finally:
        db.close()
    result = time_ledger.bulk_approve(COMPANY_ID, ids, "manager-1")
    assert result.approved_count == 2

    generated = _generate()

    assert len(generated.lines) == 1
    line = generated.lines[0]
    assert line.total_regular_hours == Decimal("12")
    assert line.total_overtime_hours == Decimal("0")
    assert line.hourly_rate_snapshot == Decimal("18.50")
    assert line.total_gross_pay == Decimal("222.00")
    assert generated.run.status == "draft"
    assert generated.run.total_gross_pay == Decimal("222.00")
    assert generated.time_entries_count == 2


def test_overtime_scenario(employee_factory, approved_entry_factory):
    employee_id = employee_factory(hourly_rate="20.00")
    for day in range(5):
        approved_entry_factory(COMPANY_ID, employee_id, _at(day, 8), _at(day, 17))

    generated = _generate()

    line = generated.lines[0]
    assert line.total_regular_hours == Decimal("40")
    assert line.total_overtime_hours == Decimal("5")
    assert line.regular_pay == Decimal("800.00")
    assert line.overtime_pay == Decimal("150.00")
    assert line.total_gross_pay == Decimal("950.00")
    assert line.overtime_rate_multiplier == Decimal("1.5")


def test_threshold_law_and_conservation_across_employees(employee_factory, approved_entry_factory):
    part_time = employee_factory(name="Part", hourly_rate="17.25")
    full_time = employee_factory(name="Full", hourly_rate="22.40")
    default_rate = employee_factory(name="Default", hourly_rate=None)

    approved_entry_factory(COMPANY_ID, part_time, _at(0, 9), _at(0, 12, 20))
    approved_entry_factory(COMPANY_ID, part_time, _at(2, 9), _at(2, 14, 40))
    for day in range(6):
        approved_entry_factory(COMPANY_ID, full_time, _at(day, 7), _at(day, 15, 30))
    approved_entry_factory(COMPANY_ID, default_rate, _at(3, 10), _at(3, 11))

    generated = _generate()

    assert len(generated.lines) == 3
    for line in generated.lines:
        total = line.total_regular_hours + line.total_overtime_hours
        if total <= 40:
            assert line.total_overtime_hours == 0
            assert line.total_regular_hours == total
        else:
            assert line.total_regular_hours == 40
            assert line.total_overtime_hours == total - 40
        assert line.total_gross_pay == line.regular_pay + line.overtime_pay

    assert sum(line.total_gross_pay for line in generated.lines) == generated.run.total_gross_pay

    by_employee = {line.employee_id: line for line in generated.lines}
    assert by_employee[default_rate].hourly_rate_snapshot == Decimal("15.00")
    assert by_employee[full_time].total_overtime_hours == Decimal("11")

    db = SessionLocal()
    try:
        persisted = db.query(PayrollRun).one()
        persisted_lines = db.query(PayrollRunLine).all()
        assert sum(line.total_gross_pay for line in persisted_lines) == persisted.total_gross_pay
    finally:
        db.close()


def test_entries_are_consumed_with_waterfall_allocation(employee_factory, approved_entry_factory):
    employee_id = employee_factory(hourly_rate="20.00")
    for day in range(5):
        approved_entry_factory(COMPANY_ID, employee_id, _at(day, 8), _at(day, 18))

    generated = _generate()
    line = generated.lines[0]
    entries = _entries_for_run(generated.run.payroll_run_id)

    assert len(entries) == 5
    assert [e.regular_hours for e in entries] == [Decimal("10")] * 4 + [Decimal("0")]
    assert [e.overtime_hours for e in entries] == [Decimal("0")] * 4 + [Decimal("10")]
    assert sum(e.regular_hours for e in entries) == line.total_regular_hours
    assert sum(e.overtime_hours for e in entries) == line.total_overtime_hours
    assert sum(e.gross_pay for e in entries) == line.total_gross_pay


def test_duplicate_run_conflicts(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))
    first = _generate()

    with pytest.raises(Conflict) as exc_info:
        _generate()
    assert exc_info.value.context["existing_runs"] == [first.run.payroll_run_id]

    with pytest.raises(Conflict):
        _generate(period_start=date(2024, 3, 10), period_end=date(2024, 3, 16), today=date(2024, 3, 20))


def test_overlap_is_per_company(employee_factory, approved_entry_factory):
    ours = employee_factory(company_id=COMPANY_ID)
    theirs = employee_factory(company_id=2)
    approved_entry_factory(COMPANY_ID, ours, _at(0, 9), _at(0, 17))
    approved_entry_factory(2, theirs, _at(0, 9), _at(0, 17))

    _generate()
    other = _generate(company_id=2)

    assert [line.employee_id for line in other.lines] == [theirs]


def test_incomplete_period_is_rejected(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))

    with pytest.raises(PeriodNotComplete):
        _generate(today=WEEK_END)

    db = SessionLocal()
    try:
        assert db.query(PayrollRun).count() == 0
    finally:
        db.close()


def test_inverted_period_is_rejected():
    with pytest.raises(ValidationError):
        _generate(period_start=WEEK_END, period_end=WEEK_START)


def test_no_eligible_entries(employee_factory):
    employee_id = employee_factory()
    # Pending entries are not eligible.
    time_ledger.clock_in(COMPANY_ID, employee_id, now=_at(0, 9))
    time_ledger.clock_out(COMPANY_ID, employee_id, now=_at(0, 17))

    with pytest.raises(NoEligibleEntries):
        _generate()


def test_entries_for_unknown_employees_are_skipped(approved_entry_factory):
    approved_entry_factory(COMPANY_ID, 9999, _at(0, 9), _at(0, 17))

    with pytest.raises(NoEligibleEntries):
        _generate()


def test_eligibility_window_covers_whole_end_day(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    late_sunday = approved_entry_factory(COMPANY_ID, employee_id, _at(6, 22), _at(6, 23, 30))
    next_monday = approved_entry_factory(COMPANY_ID, employee_id, _at(7, 0, 30), _at(7, 4, 30))
    before = approved_entry_factory(COMPANY_ID, employee_id, datetime(2024, 3, 3, 23), datetime(2024, 3, 4, 1))

    generated = _generate()

    consumed = {e.time_entry_id for e in _entries_for_run(generated.run.payroll_run_id)}
    assert consumed == {late_sunday}
    assert next_monday not in consumed
    assert before not in consumed


def test_consumed_entries_are_locked(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    entry_id = approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))
    _generate()

    with pytest.raises(LockedByPayroll):
        time_ledger.adjust(COMPANY_ID, entry_id, "manager-1", _at(0, 10), _at(0, 17))


def test_store_failure_rolls_back_whole_run(employee_factory, approved_entry_factory, monkeypatch):
    employee_id = employee_factory()
    approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))

    def _boom(**kwargs):
        raise OperationalError("INSERT INTO payroll_run_lines", {}, Exception("disk I/O error"))

    monkeypatch.setattr(payroll_runs, "PayrollRunLine", _boom)

    with pytest.raises(StoreError):
        _generate()

    db = SessionLocal()
    try:
        assert db.query(PayrollRun).count() == 0
        assert db.query(TimeEntry).filter(TimeEntry.payroll_run_id.isnot(None)).count() == 0
    finally:
        db.close()


def test_finalize_run(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))
    generated = _generate()

    run = payroll_runs.finalize_run(COMPANY_ID, generated.run.payroll_run_id)
    assert run.status == "finalized"
    assert run.finalized_at is not None

    with pytest.raises(InvalidRunState):
        payroll_runs.finalize_run(COMPANY_ID, generated.run.payroll_run_id)
    with pytest.raises(InvalidRunState):
        payroll_runs.delete_run(COMPANY_ID, generated.run.payroll_run_id)


def test_delete_draft_run_releases_entries(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    entry_id = approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))
    generated = _generate()

    released = payroll_runs.delete_run(COMPANY_ID, generated.run.payroll_run_id)

    assert released == 1
    db = SessionLocal()
    try:
        assert db.query(PayrollRun).count() == 0
        assert db.query(PayrollRunLine).count() == 0
        entry = db.query(TimeEntry).filter(TimeEntry.time_entry_id == entry_id).one()
        assert entry.payroll_run_id is None
        assert entry.regular_hours is None
        assert entry.gross_pay is None
    finally:
        db.close()

    # Released entries are eligible again.
    regenerated = _generate()
    assert regenerated.time_entries_count == 1


def test_run_lookups_are_company_scoped(employee_factory, approved_entry_factory):
    employee_id = employee_factory()
    approved_entry_factory(COMPANY_ID, employee_id, _at(0, 9), _at(0, 17))
    generated = _generate()

    with pytest.raises(NotFound):
        payroll_runs.delete_run(2, generated.run.payroll_run_id)
    with pytest.raises(NotFound):
        payroll_runs.finalize_run(COMPANY_ID, str(uuid4()))


def test_summary_for_period_in_progress(employee_factory, approved_entry_factory):
    first = employee_factory(name="First")
    second = employee_factory(name="Second")
    approved_entry_factory(COMPANY_ID, first, _at(0, 9), _at(0, 17))
    approved_entry_factory(COMPANY_ID, second, _at(1, 9), _at(1, 12, 30))
    time_ledger.clock_in(COMPANY_ID, first, now=_at(1, 9))
    time_ledger.clock_out(COMPANY_ID, first, now=_at(1, 15))

    db = SessionLocal()
    try:
        summary = payroll_runs.payroll_summary(db, COMPANY_ID, today=date(2024, 3, 6))
    finally:
        db.close()

    assert summary["period_start"] == WEEK_START
    assert summary["period_end"] == WEEK_END
    assert summary["period_complete"] is False
    assert summary["status"] == "in_progress"
    assert summary["approved_hours"] == Decimal("11.5")
    assert summary["approved_entries"] == 2
    assert summary["pending_entries"] == 1
    assert summary["employees_with_hours"] == 2
    assert summary["existing_run_id"] is None


def test_summary_reports_existing_run():
    db = SessionLocal()
    try:
        db.add(
            PayrollRun(
                company_id=COMPANY_ID,
                period_start=WEEK_START,
                period_end=WEEK_END,
                status="draft",
                total_gross_pay=Decimal("0.00"),
            )
        )
        db.commit()
        summary = payroll_runs.payroll_summary(db, COMPANY_ID, today=date(2024, 3, 8))
    finally:
        db.close()

    assert summary["status"] == "run_exists"
    assert summary["existing_run_status"] == "draft"


def test_open_entry_is_not_paid_until_clocked_out(employee_factory):
    employee_id = employee_factory()
    entry = time_ledger.clock_in(COMPANY_ID, employee_id, now=_at(0, 9))
    time_ledger.adjust(COMPANY_ID, entry.time_entry_id, "manager-1", _at(0, 9), _at(0, 17))

    with pytest.raises(NoEligibleEntries):
        _generate()

    time_ledger.clock_out(COMPANY_ID, employee_id, now=_at(0, 17, 5))
    time_ledger.approve(COMPANY_ID, entry.time_entry_id, "manager-1", clock_out_approved_at=_at(0, 17))

    generated = _generate()

    assert generated.time_entries_count == 1
    assert generated.run.total_gross_pay == Decimal("160.00")
    [consumed] = _entries_for_run(generated.run.payroll_run_id)
    assert consumed.clock_out_approved_at == _at(0, 17)
    assert consumed.gross_pay == Decimal("160.00")
