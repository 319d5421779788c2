"""
Unit tests for the cadence resolver: eligibility, period keys and the
previous-period lookup that drives streaks.
"""
from datetime import date, datetime, timezone
from types import SimpleNamespace as NS

import pytest

from starship.core.errors import InvalidCadenceError, TaskNotDueToday
from starship.models.task import TaskFrequency, TaskType
from starship.services import cadence

WED = date(2026, 9, 16)
SAT = date(2026, 9, 19)
SUN = date(2026, 9, 20)
MON = date(2026, 9, 21)


def _task(frequency, weekdays=()):
    return NS(id=1, frequency=frequency, weekday_set=frozenset(weekdays))


class TestWeekdayNumbers:
    def test_sunday_is_zero(self):
        assert cadence.weekday_number(SUN) == 0

    def test_saturday_is_six(self):
        assert cadence.weekday_number(SAT) == 6

    def test_wednesday(self):
        assert cadence.weekday_number(WED) == 3

    def test_iso_week_key(self):
        assert cadence.iso_week_key(WED) == "2026-W38"

    def test_iso_week_key_year_boundary(self):
        # 2027-01-01 is a Friday and still belongs to 2026's last ISO week.
        assert cadence.iso_week_key(date(2027, 1, 1)) == "2026-W53"


class TestEligibility:
    def test_daily_every_day(self):
        task = _task(TaskFrequency.DAILY)
        assert cadence.is_eligible_day(task, SAT)
        assert cadence.is_eligible_day(task, WED)

    def test_weekdays_skips_weekend(self):
        task = _task(TaskFrequency.WEEKDAYS, cadence.WEEKDAY_SET)
        assert cadence.is_eligible_day(task, WED)
        assert not cadence.is_eligible_day(task, SAT)
        assert not cadence.is_eligible_day(task, SUN)

    def test_weekends_only(self):
        task = _task(TaskFrequency.WEEKENDS, cadence.WEEKEND_SET)
        assert cadence.is_eligible_day(task, SAT)
        assert cadence.is_eligible_day(task, SUN)
        assert not cadence.is_eligible_day(task, MON)

    def test_custom_daily_subset(self):
        task = _task(TaskFrequency.DAILY, {1, 3, 5})
        assert cadence.is_eligible_day(task, WED)
        assert not cadence.is_eligible_day(task, date(2026, 9, 17))

    def test_weekly_any_day(self):
        task = _task(TaskFrequency.WEEKLY)
        assert all(cadence.is_eligible_day(task, d) for d in (WED, SAT, SUN, MON))


class TestPeriodKeys:
    def test_daily_key_is_date(self):
        assert cadence.period_key_of(_task(TaskFrequency.DAILY), WED) == "2026-09-16"

    def test_weekly_key_is_iso_week(self):
        task = _task(TaskFrequency.WEEKLY)
        assert cadence.period_key_of(task, WED) == "2026-W38"
        assert cadence.period_key_of(task, SUN) == "2026-W38"
        assert cadence.period_key_of(task, MON) == "2026-W39"

    def test_ineligible_day_raises(self):
        task = _task(TaskFrequency.WEEKDAYS, cadence.WEEKDAY_SET)
        with pytest.raises(TaskNotDueToday) as exc_info:
            cadence.period_key_of(task, SAT)
        assert exc_info.value.details["day"] == "2026-09-19"

    def test_previous_daily(self):
        assert cadence.previous_period_key(_task(TaskFrequency.DAILY), WED) == "2026-09-15"

    def test_previous_weekdays_skips_weekend(self):
        task = _task(TaskFrequency.WEEKDAYS, cadence.WEEKDAY_SET)
        assert cadence.previous_period_key(task, MON) == "2026-09-18"

    def test_previous_weekly(self):
        assert cadence.previous_period_key(_task(TaskFrequency.WEEKLY), MON) == "2026-W38"


class TestNormalizeWeekdays:
    def test_weekdays_default_filled(self):
        assert cadence.normalize_weekdays(TaskFrequency.WEEKDAYS, None) == [1, 2, 3, 4, 5]

    def test_weekends_default_filled(self):
        assert cadence.normalize_weekdays(TaskFrequency.WEEKENDS, None) == [0, 6]

    def test_daily_without_weekdays_is_none(self):
        assert cadence.normalize_weekdays(TaskFrequency.DAILY, None) is None

    def test_daily_subset_sorted_and_deduped(self):
        assert cadence.normalize_weekdays(TaskFrequency.DAILY, [5, 1, 5, 3]) == [1, 3, 5]

    def test_weekly_with_weekdays_rejected(self):
        with pytest.raises(InvalidCadenceError):
            cadence.normalize_weekdays(TaskFrequency.WEEKLY, [1])

    def test_weekdays_mismatch_rejected(self):
        with pytest.raises(InvalidCadenceError):
            cadence.normalize_weekdays(TaskFrequency.WEEKDAYS, [1, 2])

    def test_out_of_range_rejected(self):
        with pytest.raises(InvalidCadenceError):
            cadence.normalize_weekdays(TaskFrequency.DAILY, [7])

    def test_type_frequency_mismatch_rejected(self):
        with pytest.raises(InvalidCadenceError):
            cadence.normalize_weekdays(TaskFrequency.DAILY, None, TaskType.WEEKLY)


class TestLocalDate:
    def test_utc_zone(self):
        # conftest pins TIMEZONE=UTC
        late = datetime(2026, 9, 16, 23, 59, tzinfo=timezone.utc)
        assert cadence.local_date(late) == WED

    def test_configured_zone_moves_day(self, monkeypatch):
        monkeypatch.setattr(cadence.settings, "TIMEZONE", "Asia/Shanghai")
        # 17:00 UTC is 01:00 next day in Shanghai.
        now = datetime(2026, 9, 16, 17, 0, tzinfo=timezone.utc)
        assert cadence.local_date(now) == date(2026, 9, 17)

    def test_naive_is_utc(self):
        assert cadence.local_date(datetime(2026, 9, 16, 23, 0)) == WED

    def test_naive_is_utc_in_configured_zone(self, monkeypatch):
        monkeypatch.setattr(cadence.settings, "TIMEZONE", "Asia/Shanghai")
        naive = datetime(2026, 9, 16, 17, 0)
        aware = naive.replace(tzinfo=timezone.utc)
        assert cadence.local_date(naive) == cadence.local_date(aware) == date(2026, 9, 17)


class TestWindowStart:
    def test_today_starts_at_local_midnight(self, monkeypatch):
        monkeypatch.setattr(cadence.settings, "TIMEZONE", "Asia/Shanghai")
        now = datetime(2026, 9, 16, 17, 0, tzinfo=timezone.utc)
        # 01:00 on Sep 17 in Shanghai; midnight there is 16:00 UTC.
        assert cadence.window_start("today", now) == datetime(2026, 9, 16, 16, 0, tzinfo=timezone.utc)

    def test_week_is_seven_days(self):
        now = datetime(2026, 9, 16, 9, 0, tzinfo=timezone.utc)
        assert cadence.window_start("week", now) == datetime(2026, 9, 9, 9, 0, tzinfo=timezone.utc)

    def test_month_is_one_calendar_month(self):
        now = datetime(2026, 9, 16, 9, 0, tzinfo=timezone.utc)
        assert cadence.window_start("month", now) == datetime(2026, 8, 16, 9, 0, tzinfo=timezone.utc)

    def test_month_end_clamps_to_shorter_month(self):
        now = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
        assert cadence.window_start("month", now) == datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc)

    def test_naive_now_is_utc(self):
        assert cadence.window_start("week", datetime(2026, 9, 16, 9, 0)) == datetime(
            2026, 9, 9, 9, 0, tzinfo=timezone.utc
        )

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            cadence.window_start("year", datetime(2026, 9, 16, tzinfo=timezone.utc))
