from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from app.services.payroll_math import (
    DEFAULT_HOURLY_RATE,
    allocate_employee,
    calculate_gross_pay,
    hours_between,
    split_regular_overtime,
)


def _entry(entry_id: str, start: datetime, hours: float):
    return SimpleNamespace(
        time_entry_id=entry_id,
        clock_in_approved_at=start,
        clock_out_approved_at=start + timedelta(hours=hours),
    )


def test_hours_between_quantizes_to_four_places():
    start = datetime(2024, 3, 4, 9, 0)
    assert hours_between(start, datetime(2024, 3, 4, 17, 0)) == Decimal("8.0000")
    assert hours_between(start, start + timedelta(minutes=20)) == Decimal("0.3333")
    assert hours_between(start, start + timedelta(minutes=40)) == Decimal("0.6667")


def test_split_threshold_law():
    under = split_regular_overtime(Decimal("12"))
    assert (under.regular, under.overtime) == (Decimal("12"), Decimal("0"))

    at = split_regular_overtime(Decimal("40"))
    assert (at.regular, at.overtime) == (Decimal("40"), Decimal("0"))

    over = split_regular_overtime(Decimal("45.5"))
    assert (over.regular, over.overtime) == (Decimal("40"), Decimal("5.5"))
    assert over.total == Decimal("45.5")


def test_gross_pay_total_is_sum_of_rounded_components():
    pay = calculate_gross_pay(Decimal("40"), Decimal("5"), Decimal("20.00"))
    assert pay.regular_pay == Decimal("800.00")
    assert pay.overtime_pay == Decimal("150.00")
    assert pay.total_gross_pay == Decimal("950.00")


def test_gross_pay_rounding_divergence_is_explicit():
    pay = calculate_gross_pay(Decimal("0.1"), Decimal("0.1"), Decimal("0.05"))
    assert pay.regular_pay == Decimal("0.01")
    assert pay.overtime_pay == Decimal("0.01")
    assert pay.total_gross_pay == Decimal("0.02")
    assert pay.unrounded_total == Decimal("0.0125")
    assert pay.rounded_unrounded_total == Decimal("0.01")


def test_allocation_waterfall_consumes_regular_budget_chronologically():
    monday = datetime(2024, 3, 4, 8, 0)
    entries = [_entry(f"e{i}", monday + timedelta(days=i), 10) for i in range(5)]

    # Input order must not matter.
    allocation = allocate_employee(7, list(reversed(entries)), Decimal("20.00"))

    assert allocation.total_hours == Decimal("50")
    assert allocation.split.regular == Decimal("40")
    assert allocation.split.overtime == Decimal("10")
    assert [a.time_entry_id for a in allocation.entries] == ["e0", "e1", "e2", "e3", "e4"]
    assert [a.regular_hours for a in allocation.entries] == [Decimal("10")] * 4 + [Decimal("0")]
    assert [a.overtime_hours for a in allocation.entries] == [Decimal("0")] * 4 + [Decimal("10")]

    assert sum(a.regular_hours for a in allocation.entries) == allocation.split.regular
    assert sum(a.overtime_hours for a in allocation.entries) == allocation.split.overtime
    assert sum(a.gross_pay for a in allocation.entries) == allocation.pay.total_gross_pay
    assert allocation.pay.total_gross_pay == Decimal("1100.00")


def test_allocation_splits_the_entry_that_crosses_the_threshold():
    start = datetime(2024, 3, 4, 0, 0)
    allocation = allocate_employee(
        1,
        [_entry("a", start, 35), _entry("b", start + timedelta(days=2), 10)],
        Decimal("10.00"),
    )
    first, second = allocation.entries
    assert (first.regular_hours, first.overtime_hours) == (Decimal("35"), Decimal("0"))
    assert (second.regular_hours, second.overtime_hours) == (Decimal("5"), Decimal("5"))
    assert second.regular_pay == Decimal("50.00")
    assert second.overtime_pay == Decimal("75.00")


def test_allocation_cumulative_rounding_sums_to_line_pay():
    start = datetime(2024, 3, 4, 9, 0)
    entries = [
        SimpleNamespace(
            time_entry_id=f"e{i}",
            clock_in_approved_at=start + timedelta(hours=i),
            clock_out_approved_at=start + timedelta(hours=i, minutes=20),
        )
        for i in range(3)
    ]

    allocation = allocate_employee(1, entries, Decimal("10.00"))

    assert [a.hours for a in allocation.entries] == [Decimal("0.3333")] * 3
    assert [a.regular_pay for a in allocation.entries] == [
        Decimal("3.33"),
        Decimal("3.34"),
        Decimal("3.33"),
    ]
    assert allocation.pay.regular_pay == Decimal("10.00")
    assert sum(a.gross_pay for a in allocation.entries) == allocation.pay.total_gross_pay


def test_allocation_defaults_missing_rate():
    allocation = allocate_employee(1, [_entry("a", datetime(2024, 3, 4, 9, 0), 2)], None)
    assert allocation.hourly_rate == DEFAULT_HOURLY_RATE
    assert allocation.pay.total_gross_pay == Decimal("30.00")


def test_daily_totals_bucket_by_clock_in_date():
    monday = datetime(2024, 3, 4, 6, 0)
    allocation = allocate_employee(
        1,
        [
            _entry("a", monday, 4),
            _entry("b", monday.replace(hour=13), 4),
            _entry("c", monday + timedelta(days=1), 3),
        ],
        Decimal("20.00"),
    )
    days = allocation.daily_totals()
    assert list(days) == [monday.date(), (monday + timedelta(days=1)).date()]
    assert days[monday.date()] == (Decimal("8"), Decimal("0"), Decimal("160.00"))
    assert days[(monday + timedelta(days=1)).date()] == (Decimal("3"), Decimal("0"), Decimal("60.00"))
