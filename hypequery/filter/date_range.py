"""Resolution of named and derived date ranges.

All functions return ``(start, end)`` datetime pairs and take ``now`` as an
argument so callers (and tests) control the clock. Calendar ranges run from
local midnight at the start boundary to local midnight at the end boundary;
rolling ranges (``last_7_days``, ``last_30_days``, ``last_n_days``) end at
``now`` and are not midnight-aligned.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from hypequery.exceptions import ValidationError
from hypequery.onto import DateRangeToken

DateRange = tuple[datetime, datetime]


def to_iso(value: date | datetime) -> str:
    """ISO-8601 text of a date or datetime.

    Datetimes use a space separator, which ClickHouse parses for both
    ``DateTime`` and ``DateTime64`` without best-effort mode.
    """
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return value.isoformat()


def _midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def _add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def shift_years(value: datetime, years: int) -> datetime:
    """Shift by whole calendar years; Feb 29 falls back to Feb 28."""
    year = value.year + years
    day = min(value.day, calendar.monthrange(year, value.month)[1])
    return value.replace(year=year, day=day)


def resolve_date_range(
    token: DateRangeToken | str, now: datetime | None = None
) -> DateRange:
    """Turn a named range into concrete bounds.

    Raises:
        ValidationError: For unknown tokens
    """
    if token not in DateRangeToken:
        raise ValidationError(
            f"Unknown date range '{token}'. "
            f"Valid ranges are: {', '.join(t.value for t in DateRangeToken)}"
        )
    token = DateRangeToken(token)
    now = now or datetime.now()
    today = _midnight(now.date())

    if token == DateRangeToken.TODAY:
        return today, today + timedelta(days=1)
    if token == DateRangeToken.YESTERDAY:
        return today - timedelta(days=1), today
    if token == DateRangeToken.LAST_7_DAYS:
        return last_n_days_range(7, now)
    if token == DateRangeToken.LAST_30_DAYS:
        return last_n_days_range(30, now)
    if token == DateRangeToken.THIS_MONTH:
        year, month = _add_months(now.year, now.month, 1)
        return _month_start(now.year, now.month), _month_start(year, month)
    if token == DateRangeToken.LAST_MONTH:
        year, month = _add_months(now.year, now.month, -1)
        return _month_start(year, month), _month_start(now.year, now.month)
    if token == DateRangeToken.THIS_QUARTER:
        first_month = 3 * ((now.month - 1) // 3) + 1
        year, month = _add_months(now.year, first_month, 3)
        return _month_start(now.year, first_month), _month_start(year, month)
    # year_to_date
    return datetime(now.year, 1, 1), now


def last_n_days_range(n: int, now: datetime | None = None) -> DateRange:
    if n < 0:
        raise ValidationError(f"Number of days must be non-negative, got {n}")
    now = now or datetime.now()
    return now - timedelta(days=n), now


def previous_period(current: DateRange) -> DateRange:
    """The period of equal length immediately before ``current``."""
    start, end = current
    if end < start:
        raise ValidationError("Date range end precedes its start")
    return start - (end - start), start


def year_over_year(current: DateRange) -> DateRange:
    start, end = current
    return shift_years(start, -1), shift_years(end, -1)


def as_datetime(value: date | datetime | str) -> datetime:
    """Accept dates, datetimes and ISO strings as range bounds."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return _midnight(value)
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid date value '{value}'") from e
