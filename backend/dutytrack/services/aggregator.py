"""
Monthly attendance aggregation.

Turns the raw attendance sessions and leave requests of one employee into a
per-day classification of a calendar month and the summary counts and
percentages derived from it.

Rules:
  - Saturdays and Sundays are weekend days; every other day is a business day.
  - Only *elapsed* business days are classified and counted: in the current
    month those up to and including ``today``, in any other month all of them.
  - An elapsed business day falls into exactly one bucket, checked in order:
    worked -> approved leave -> pending leave -> absent. A rejected leave
    counts as absent.
  - Percentages are relative to the number of elapsed business days.

Months are one-based (1 = January). ``today`` is always passed in; nothing
here reads the clock, and the inputs are never mutated.

Records may be store documents (camelCase keys) or schema objects. A record
whose date is missing or unparseable is skipped. Several sessions on one date
count as a single worked day. Callers are expected to keep at most one leave
request per employee and date; if there are several, the last one wins.
"""

import calendar
import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from dutytrack.core.errors import InvalidArgument
from dutytrack.schemas.stats import DailyStatus, MonthlyStat

logger = logging.getLogger(__name__)

_WEEKEND = {calendar.SATURDAY, calendar.SUNDAY}


def compute_monthly_stats(
    year: int,
    month: int,
    sessions: Iterable[Any],
    leaves: Iterable[Any],
    today: date,
) -> MonthlyStat:
    days = classify_month(year, month, sessions, leaves, today)

    counts = {
        "worked": 0,
        "approved_leave": 0,
        "pending_leave": 0,
        "absent": 0,
        "weekend": 0,
        "future": 0,
    }
    for day in days:
        counts[day.status] += 1

    weekend_days = counts["weekend"]
    business_days = len(days) - weekend_days
    past_business_days = business_days - counts["future"]

    def pct(n: int) -> float:
        return n / past_business_days * 100 if past_business_days > 0 else 0.0

    return MonthlyStat(
        year=year,
        month=month,
        days_in_month=len(days),
        business_days=business_days,
        weekend_days=weekend_days,
        past_business_days=past_business_days,
        is_current_month=_is_current_month(year, month, today),
        work_days=counts["worked"],
        leave_days=counts["approved_leave"],
        pending_leave_days=counts["pending_leave"],
        absent_days=counts["absent"],
        work_percentage=pct(counts["worked"]),
        leave_percentage=pct(counts["approved_leave"]),
        pending_leave_percentage=pct(counts["pending_leave"]),
        absent_percentage=pct(counts["absent"]),
    )


def classify_month(
    year: int,
    month: int,
    sessions: Iterable[Any],
    leaves: Iterable[Any],
    today: date,
) -> list[DailyStatus]:
    """One ``DailyStatus`` per calendar day of the month, in date order."""
    _validate_month(year, month)
    _, last_day = calendar.monthrange(year, month)
    current = _is_current_month(year, month, today)

    worked: set[date] = set()
    skipped = 0
    for record in sessions:
        d = _record_date(record, "date", "date")
        if d is None:
            skipped += 1
            continue
        if (d.year, d.month) == (year, month):
            worked.add(d)

    leave_status: dict[date, str] = {}
    for record in leaves:
        d = _record_date(record, "leaveDate", "leave_date")
        if d is None:
            skipped += 1
            continue
        if (d.year, d.month) == (year, month):
            leave_status[d] = _record_field(record, "status", "status") or "pending"

    if skipped:
        logger.warning(
            "Skipped %d record(s) without a usable date while aggregating %04d-%02d",
            skipped, year, month,
        )

    days: list[DailyStatus] = []
    for day_no in range(1, last_day + 1):
        d = date(year, month, day_no)
        status = leave_status.get(d)
        known_status = status if status in ("pending", "approved", "rejected") else None

        if d.weekday() in _WEEKEND:
            kind = "weekend"
        elif current and d > today:
            kind = "future"
        elif d in worked:
            kind = "worked"
        elif status == "approved":
            kind = "approved_leave"
        elif status == "pending":
            kind = "pending_leave"
        else:
            kind = "absent"

        days.append(DailyStatus(date=d, status=kind, leave_status=known_status))
    return days


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_month(year: Any, month: Any) -> None:
    if isinstance(year, bool) or not isinstance(year, int) or not 1 <= year <= 9999:
        raise InvalidArgument(f"year must be an integer in 1..9999, got {year!r}")
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidArgument(f"month must be an integer in 1..12, got {month!r}")


def _is_current_month(year: int, month: int, today: date) -> bool:
    return (today.year, today.month) == (year, month)


def _record_field(record: Any, key: str, attr: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key, record.get(attr))
    return getattr(record, attr, None)


def _record_date(record: Any, key: str, attr: str) -> date | None:
    value = _record_field(record, key, attr)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None
