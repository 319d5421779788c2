"""Constants and small helpers shared by the test modules."""
import uuid
from datetime import datetime, timedelta, timezone

# Wednesday, ISO week 2026-W38.
WEDNESDAY = datetime(2026, 9, 16, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now


def unique_name(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
