"""
Tests for time range resolution and period bucketing.
"""

import pendulum
import pytest

from peerpool.domain.models import TimeRange
from peerpool.domain.windowing import (
    Period,
    TimeFilter,
    bucket_period,
    group_by_period,
    period_range,
    periods_covered,
    resolve_time_range,
)

TZ = "Europe/Berlin"


class TestResolveTimeRange:
    """Tests for resolve_time_range."""

    def test_today(self):
        """Today spans local midnight to end of day."""
        now = pendulum.parse("2024-11-25 10:30", tz=TZ)  # Monday

        tr = resolve_time_range(TimeFilter.TODAY, now)

        assert tr.start == pendulum.parse("2024-11-25 00:00", tz=TZ)
        assert tr.end == pendulum.parse("2024-11-25 23:59:59.999999", tz=TZ)

    def test_tomorrow(self):
        """Tomorrow is today shifted by one day."""
        now = pendulum.parse("2024-11-25 23:30", tz=TZ)

        tr = resolve_time_range("tomorrow", now)

        assert tr.start == pendulum.parse("2024-11-26 00:00", tz=TZ)
        assert tr.end.to_date_string() == "2024-11-26"
        assert tr.end.hour == 23 and tr.end.minute == 59

    def test_weekend_from_weekday(self):
        """On a weekday, weekend means the coming Saturday and Sunday."""
        now = pendulum.parse("2024-11-25 10:00", tz=TZ)  # Monday

        tr = resolve_time_range(TimeFilter.WEEKEND, now)

        assert tr.start == pendulum.parse("2024-11-30 00:00", tz=TZ)
        assert tr.end.to_date_string() == "2024-12-01"
        assert tr.start.day_of_week == pendulum.SATURDAY

    def test_weekend_on_saturday_skips_to_next_week(self):
        """Saturday 10:00 resolves to the following Saturday, seven days out."""
        now = pendulum.parse("2024-11-23 10:00", tz=TZ)  # Saturday

        tr = resolve_time_range(TimeFilter.WEEKEND, now)

        assert tr.start == pendulum.parse("2024-11-30 00:00", tz=TZ)

    def test_weekend_on_sunday_skips_to_next_saturday(self):
        """Sunday resolves to the Saturday six days out."""
        now = pendulum.parse("2024-11-24 10:00", tz=TZ)  # Sunday

        tr = resolve_time_range(TimeFilter.WEEKEND, now)

        assert tr.start == pendulum.parse("2024-11-30 00:00", tz=TZ)

    def test_weekend_include_current(self):
        """With include_current_weekend, Saturday and Sunday resolve to the weekend in progress."""
        saturday = pendulum.parse("2024-11-23 10:00", tz=TZ)
        sunday = pendulum.parse("2024-11-24 10:00", tz=TZ)
        monday = pendulum.parse("2024-11-25 10:00", tz=TZ)

        assert resolve_time_range("weekend", saturday, include_current_weekend=True).start == \
            pendulum.parse("2024-11-23 00:00", tz=TZ)
        assert resolve_time_range("weekend", sunday, include_current_weekend=True).start == \
            pendulum.parse("2024-11-23 00:00", tz=TZ)
        assert resolve_time_range("weekend", monday, include_current_weekend=True).start == \
            pendulum.parse("2024-11-30 00:00", tz=TZ)

    def test_custom_is_a_week_fallback(self):
        """Custom spans today's midnight to the end of the day seven days later."""
        now = pendulum.parse("2024-11-25 10:00", tz=TZ)

        tr = resolve_time_range(TimeFilter.CUSTOM, now)

        assert tr.start == pendulum.parse("2024-11-25 00:00", tz=TZ)
        assert tr.end.to_date_string() == "2024-12-02"

    @pytest.mark.parametrize("time_filter", list(TimeFilter))
    def test_every_filter_yields_ordered_whole_days(self, time_filter):
        """Every filter returns start <= end with the expected span."""
        now = pendulum.parse("2024-11-27 15:45", tz=TZ)
        expected_days = {
            TimeFilter.TODAY: 1,
            TimeFilter.TOMORROW: 1,
            TimeFilter.WEEKEND: 2,
            TimeFilter.CUSTOM: 8,
        }[time_filter]

        tr = resolve_time_range(time_filter, now)

        assert tr.start <= tr.end
        assert tr.start == tr.start.start_of("day")
        hours = (tr.end - tr.start).total_seconds() / 3600
        assert expected_days * 24 - 1 < hours < expected_days * 24

    def test_unknown_filter_raises(self):
        """Unknown filter strings are rejected."""
        with pytest.raises(ValueError):
            resolve_time_range("next-month", pendulum.now(TZ))


class TestBucketPeriod:
    """Tests for bucket_period."""

    @pytest.mark.parametrize("hour", range(24))
    def test_every_hour_maps_to_one_period(self, hour):
        """The mapping is total over the day and follows the fixed boundaries."""
        instant = pendulum.datetime(2024, 11, 25, hour, 30, tz=TZ)

        if hour < 12:
            expected = Period.MORNING
        elif hour < 17:
            expected = Period.AFTERNOON
        elif hour < 21:
            expected = Period.EVENING
        else:
            expected = Period.NIGHT

        assert bucket_period(instant) is expected
        assert bucket_period(instant) is bucket_period(instant)

    def test_boundaries(self):
        """Boundary hours fall into the later period."""
        assert bucket_period(pendulum.datetime(2024, 11, 25, 12, 0, tz=TZ)) is Period.AFTERNOON
        assert bucket_period(pendulum.datetime(2024, 11, 25, 17, 0, tz=TZ)) is Period.EVENING
        assert bucket_period(pendulum.datetime(2024, 11, 25, 21, 0, tz=TZ)) is Period.NIGHT
        assert bucket_period(pendulum.datetime(2024, 11, 25, 11, 59, tz=TZ)) is Period.MORNING

    def test_converts_to_local_timezone(self):
        """A UTC instant is bucketed by the local hour when a timezone is given."""
        instant = pendulum.parse("2024-11-25T11:30:00+00:00")

        assert bucket_period(instant) is Period.MORNING
        assert bucket_period(instant, TZ) is Period.AFTERNOON

    def test_labels_use_one_casing(self):
        """Values are lowercase; labels are capitalized for display."""
        assert [p.value for p in Period] == ["morning", "afternoon", "evening", "night"]
        assert Period.EVENING.label == "Evening"
        assert Period.MORNING.time_range_label == "12am - 12pm"
        assert Period.AFTERNOON.time_range_label == "12pm - 5pm"
        assert Period.NIGHT.time_range_label == "9pm - 12am"


class TestPeriodWindows:
    """Tests for period_range, periods_covered and group_by_period."""

    def test_period_range(self):
        """Period windows follow the bucket boundaries; night ends at end of day."""
        day = pendulum.parse("2024-11-25 10:00", tz=TZ)

        evening = period_range(Period.EVENING, day)
        night = period_range(Period.NIGHT, day)

        assert evening.start.hour == 17 and evening.end.hour == 21
        assert night.start.hour == 21
        assert night.end == day.end_of("day")

    def test_periods_covered_by_long_block(self):
        """A block from 10:00 to 19:00 covers morning, afternoon and evening."""
        block = TimeRange(
            start=pendulum.parse("2024-11-25 10:00", tz=TZ),
            end=pendulum.parse("2024-11-25 19:00", tz=TZ)
        )

        assert periods_covered(block) == [Period.MORNING, Period.AFTERNOON, Period.EVENING]

    def test_periods_covered_across_midnight(self):
        """Blocks across midnight cover periods on both days, clipped by the range."""
        block = TimeRange(
            start=pendulum.parse("2024-11-25 22:00", tz=TZ),
            end=pendulum.parse("2024-11-26 02:00", tz=TZ)
        )
        today = resolve_time_range("today", pendulum.parse("2024-11-25 08:00", tz=TZ))

        assert periods_covered(block) == [Period.MORNING, Period.NIGHT]
        assert periods_covered(block, within=today) == [Period.NIGHT]

    def test_periods_covered_outside_range(self):
        """A block outside the range covers nothing."""
        block = TimeRange(
            start=pendulum.parse("2024-11-27 10:00", tz=TZ),
            end=pendulum.parse("2024-11-27 11:00", tz=TZ)
        )
        today = resolve_time_range("today", pendulum.parse("2024-11-25 08:00", tz=TZ))

        assert periods_covered(block, within=today) == []

    def test_group_by_period_keeps_every_period(self):
        """Every period is a key, in canonical order, preserving input order."""
        items = [("Sam", Period.AFTERNOON), ("Taylor", Period.AFTERNOON), ("Jordan", Period.EVENING), ("x", None)]

        grouped = group_by_period(items, key=lambda item: item[1])

        assert list(grouped) == list(Period)
        assert [name for name, _ in grouped[Period.AFTERNOON]] == ["Sam", "Taylor"]
        assert [name for name, _ in grouped[Period.EVENING]] == ["Jordan"]
        assert grouped[Period.MORNING] == []
