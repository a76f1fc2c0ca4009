"""Pay period boundaries from a weekday-anchor configuration.

Weekday indices follow the settings convention: 0 = Sunday ... 6 = Saturday.
"""

from datetime import date, datetime, time, timedelta
from typing import Tuple

from app.core.errors import ValidationError


def weekday_index(d: date) -> int:
    return d.isoweekday() % 7


def validate_day(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise ValidationError(f"{name} must be an integer between 0 and 6", field=name)
    return value


def period_length(start_day: int, end_day: int) -> int:
    start_day = validate_day(start_day, "period_start_day")
    end_day = validate_day(end_day, "period_end_day")
    if start_day <= end_day:
        return end_day - start_day
    return 7 - start_day + end_day


def resolve_period(today: date, start_day: int, end_day: int) -> Tuple[date, date]:
    """Most recent period whose end weekday is on or before ``today``.

    ``resolve_period(date(2024, 3, 6), 1, 0) == (date(2024, 2, 26), date(2024, 3, 3))``
    """
    length = period_length(start_day, end_day)
    period_end = today - timedelta(days=(weekday_index(today) - end_day + 7) % 7)
    return period_end - timedelta(days=length), period_end


def current_period(today: date, start_day: int, end_day: int) -> Tuple[date, date]:
    """The period still in progress: it ends on the next ``end_day`` on or after today."""
    period_start, period_end = resolve_period(today, start_day, end_day)
    if period_end != today:
        period_start += timedelta(days=7)
        period_end += timedelta(days=7)
    return period_start, period_end


def period_window(period_start: date, period_end: date) -> Tuple[datetime, datetime]:
    # [start 00:00, (end + 1) 00:00), the end date is an inclusive day.
    return (
        datetime.combine(period_start, time.min),
        datetime.combine(period_end + timedelta(days=1), time.min),
    )
