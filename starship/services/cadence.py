"""
Cadence resolver: which period a recurring task belongs to on a given day.

Period keys
-----------
  daily cadences (DAILY / WEEKDAYS / WEEKENDS)  → "YYYY-MM-DD"
  WEEKLY                                       → "YYYY-Www"  (ISO year-week)

Weekday numbers follow Sunday=0 … Saturday=6.

Every boundary is computed in one canonical time zone (settings.TIMEZONE,
server-local when empty) so a completion just after midnight lands in the
same period on every client.

Public API
----------
local_date(now)                              -> date
window_start(period, now)                    -> datetime  (UTC)
is_eligible_day(task, reference_date)        -> bool
period_key_of(task, reference_date)          -> str   (raises TaskNotDueToday)
previous_period_key(task, reference_date)    -> str
normalize_weekdays(frequency, weekdays)      -> list[int] | None  (raises InvalidCadenceError)
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from starship.core.clock import as_utc
from starship.core.config import settings
from starship.core.errors import InvalidCadenceError, TaskNotDueToday
from starship.models.task import TaskFrequency, TaskType

WEEKDAY_SET = frozenset({1, 2, 3, 4, 5})
WEEKEND_SET = frozenset({0, 6})


# ---------------------------------------------------------------------------
# Time zone / clock
# ---------------------------------------------------------------------------

def canonical_tz() -> Optional[tzinfo]:
    """Configured zone, or None for the server's local zone."""
    if settings.TIMEZONE:
        return ZoneInfo(settings.TIMEZONE)
    return None


def local_date(now: datetime) -> date:
    """Calendar date of `now` in the canonical zone. Naive datetimes are UTC."""
    return as_utc(now).astimezone(canonical_tz()).date()


def window_start(period: str, now: datetime) -> datetime:
    """
    Start of a "today" / "week" / "month" reporting window ending at `now`, in UTC.

    "today" begins at local midnight; "week" is the last 7 days; "month"
    goes back one calendar month (Mar 31 -> Feb 28/29).
    """
    now = as_utc(now)
    if period == "today":
        midnight = datetime.combine(local_date(now), time.min, tzinfo=canonical_tz())
        if midnight.tzinfo is None:
            midnight = midnight.astimezone()
        return midnight.astimezone(timezone.utc)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - relativedelta(months=1)
    raise ValueError(f"unknown period: {period}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def weekday_number(day: date) -> int:
    """Sunday=0 … Saturday=6."""
    return day.isoweekday() % 7


def iso_week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def _is_weekly(task) -> bool:
    return task.frequency == TaskFrequency.WEEKLY


# ---------------------------------------------------------------------------
# Validation (task definition time)
# ---------------------------------------------------------------------------

def normalize_weekdays(
    frequency: str,
    weekdays: Optional[Iterable[int]],
    task_type: Optional[str] = None,
) -> Optional[list[int]]:
    """
    Check a frequency / weekdays / type combination and return the weekday
    list to store (sorted, de-duplicated) or None.
    """
    days = sorted(set(weekdays)) if weekdays is not None else None
    if days is not None and any(d < 0 or d > 6 for d in days):
        raise InvalidCadenceError("weekdays must be integers 0-6 (Sunday=0).", frequency)

    if task_type is not None:
        if (task_type == TaskType.WEEKLY) != (frequency == TaskFrequency.WEEKLY):
            raise InvalidCadenceError(
                "WEEKLY tasks must use the WEEKLY frequency and vice versa.", frequency
            )

    if frequency == TaskFrequency.WEEKLY:
        if days:
            raise InvalidCadenceError("WEEKLY tasks have no weekdays.", frequency)
        return None

    if frequency == TaskFrequency.WEEKDAYS:
        if days is None or not days:
            return sorted(WEEKDAY_SET)
        if set(days) != WEEKDAY_SET:
            raise InvalidCadenceError("WEEKDAYS requires weekdays 1-5.", frequency)
        return days

    if frequency == TaskFrequency.WEEKENDS:
        if days is None or not days:
            return sorted(WEEKEND_SET)
        if set(days) != WEEKEND_SET:
            raise InvalidCadenceError("WEEKENDS requires weekdays {0, 6}.", frequency)
        return days

    # DAILY: no weekdays means every day; a subset is a custom schedule.
    if days is not None and not days:
        raise InvalidCadenceError("A custom DAILY schedule needs at least one weekday.", frequency)
    return days


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def is_eligible_day(task, reference_date: date) -> bool:
    if _is_weekly(task):
        return True
    allowed = task.weekday_set
    if not allowed:
        return task.frequency == TaskFrequency.DAILY
    return weekday_number(reference_date) in allowed


def period_key_of(task, reference_date: date) -> str:
    if not is_eligible_day(task, reference_date):
        raise TaskNotDueToday(getattr(task, "id", None), reference_date.isoformat())
    if _is_weekly(task):
        return iso_week_key(reference_date)
    return reference_date.isoformat()


def previous_period_key(task, reference_date: date) -> str:
    """
    Key of the period immediately before the one containing `reference_date`:
    the nearest earlier eligible day for daily cadences, the previous ISO
    week for weekly ones.
    """
    if _is_weekly(task):
        return iso_week_key(reference_date - timedelta(days=7))
    for back in range(1, 8):
        candidate = reference_date - timedelta(days=back)
        if is_eligible_day(task, candidate):
            return candidate.isoformat()
    raise InvalidCadenceError("Task has no eligible weekday.", str(task.frequency))
