"""Pure payroll arithmetic shared by the run generator and the pay stub builder.

Hours are Decimal values quantized to 4 places, money is quantized to cents
with ROUND_HALF_UP. Rounding policy: the regular and overtime components are
rounded independently and the gross total is their sum, so every persisted
total equals the sum of its persisted parts. Per-entry pay is derived from
rounded running totals so the entries of one employee always sum to the
employee's line exactly.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Tuple

REGULAR_HOURS_THRESHOLD = Decimal("40")
OVERTIME_MULTIPLIER = Decimal("1.5")
DEFAULT_HOURLY_RATE = Decimal("15.00")

HOURS_QUANTUM = Decimal("0.0001")
CENTS = Decimal("0.01")
ZERO = Decimal("0")

_MICROSECONDS_PER_HOUR = Decimal(3600 * 1_000_000)


def round_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_hours(value) -> Decimal:
    return Decimal(value).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def hours_between(start: datetime, end: datetime) -> Decimal:
    micros = (end - start) // timedelta(microseconds=1)
    return round_hours(Decimal(micros) / _MICROSECONDS_PER_HOUR)


@dataclass(frozen=True)
class HoursSplit:
    regular: Decimal
    overtime: Decimal

    @property
    def total(self) -> Decimal:
        return self.regular + self.overtime


def split_regular_overtime(
    total_hours: Decimal,
    threshold: Decimal = REGULAR_HOURS_THRESHOLD,
) -> HoursSplit:
    if total_hours <= threshold:
        return HoursSplit(regular=total_hours, overtime=ZERO)
    return HoursSplit(regular=threshold, overtime=total_hours - threshold)


@dataclass(frozen=True)
class GrossPay:
    regular_pay: Decimal
    overtime_pay: Decimal
    total_gross_pay: Decimal
    unrounded_total: Decimal

    @property
    def rounded_unrounded_total(self) -> Decimal:
        """The total rounded once from unrounded components; may differ by a cent."""
        return round_money(self.unrounded_total)


def calculate_gross_pay(
    regular_hours: Decimal,
    overtime_hours: Decimal,
    hourly_rate: Decimal,
    overtime_multiplier: Decimal = OVERTIME_MULTIPLIER,
) -> GrossPay:
    regular_raw = regular_hours * hourly_rate
    overtime_raw = overtime_hours * hourly_rate * overtime_multiplier
    regular_pay = round_money(regular_raw)
    overtime_pay = round_money(overtime_raw)
    return GrossPay(
        regular_pay=regular_pay,
        overtime_pay=overtime_pay,
        total_gross_pay=regular_pay + overtime_pay,
        unrounded_total=regular_raw + overtime_raw,
    )


@dataclass(frozen=True)
class EntryAllocation:
    time_entry_id: str
    work_date: date
    hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal

    @property
    def gross_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay


@dataclass(frozen=True)
class EmployeeAllocation:
    employee_id: int
    hourly_rate: Decimal
    overtime_multiplier: Decimal
    total_hours: Decimal
    split: HoursSplit
    pay: GrossPay
    entries: Tuple[EntryAllocation, ...]

    def daily_totals(self) -> "OrderedDict[date, Tuple[Decimal, Decimal, Decimal]]":
        """(regular, overtime, gross) per calendar day of approved clock-in."""
        days: "OrderedDict[date, Tuple[Decimal, Decimal, Decimal]]" = OrderedDict()
        for entry in sorted(self.entries, key=lambda e: e.work_date):
            regular, overtime, gross = days.get(entry.work_date, (ZERO, ZERO, ZERO))
            days[entry.work_date] = (
                regular + entry.regular_hours,
                overtime + entry.overtime_hours,
                gross + entry.gross_pay,
            )
        return days


def approved_hours(entry) -> Decimal:
    return hours_between(entry.clock_in_approved_at, entry.clock_out_approved_at)


def _chronological(entries: Iterable) -> list:
    return sorted(entries, key=lambda e: (e.clock_in_approved_at, str(e.time_entry_id)))


def allocate_employee(
    employee_id: int,
    entries: Sequence,
    hourly_rate: Optional[Decimal],
    overtime_multiplier: Decimal = OVERTIME_MULTIPLIER,
    threshold: Decimal = REGULAR_HOURS_THRESHOLD,
) -> EmployeeAllocation:
    """Split one employee's approved entries into regular and overtime pay.

    ``entries`` need ``time_entry_id``, ``clock_in_approved_at`` and
    ``clock_out_approved_at``. Entries are consumed in clock-in order against
    a running regular-hour budget; whatever an entry has beyond the remaining
    budget is overtime.
    """
    rate = Decimal(hourly_rate) if hourly_rate is not None else DEFAULT_HOURLY_RATE
    multiplier = Decimal(overtime_multiplier)
    ordered = _chronological(entries)

    hours = [approved_hours(e) for e in ordered]
    total_hours = sum(hours, ZERO)
    split = split_regular_overtime(total_hours, threshold)
    pay = calculate_gross_pay(split.regular, split.overtime, rate, multiplier)

    remaining_regular = split.regular
    cumulative_regular = ZERO
    cumulative_overtime = ZERO
    paid_regular = ZERO
    paid_overtime = ZERO
    allocations = []

    for entry, entry_hours in zip(ordered, hours):
        entry_regular = min(entry_hours, remaining_regular)
        entry_overtime = entry_hours - entry_regular
        remaining_regular -= entry_regular

        cumulative_regular += entry_regular
        cumulative_overtime += entry_overtime
        regular_to_date = round_money(cumulative_regular * rate)
        overtime_to_date = round_money(cumulative_overtime * rate * multiplier)

        allocations.append(
            EntryAllocation(
                time_entry_id=str(entry.time_entry_id),
                work_date=entry.clock_in_approved_at.date(),
                hours=entry_hours,
                regular_hours=entry_regular,
                overtime_hours=entry_overtime,
                regular_pay=regular_to_date - paid_regular,
                overtime_pay=overtime_to_date - paid_overtime,
            )
        )
        paid_regular = regular_to_date
        paid_overtime = overtime_to_date

    return EmployeeAllocation(
        employee_id=int(employee_id),
        hourly_rate=rate,
        overtime_multiplier=multiplier,
        total_hours=total_hours,
        split=split,
        pay=pay,
        entries=tuple(allocations),
    )
