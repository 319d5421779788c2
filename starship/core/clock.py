"""
Clock source for "now".

Routers receive it through `Depends(get_clock)` so tests can pin time with
`app.dependency_overrides[get_clock]`.

Naive datetimes anywhere in the service layer mean UTC: SQLite hands
`DateTime(timezone=True)` columns back without tzinfo, and callers passing
`now=` follow the same rule. `as_utc` is the single place that applies it.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def get_clock() -> Clock:
    return utcnow
