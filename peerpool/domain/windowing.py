"""
Availability windowing: time range resolution and period bucketing.

Pure domain logic without any external dependencies (no API calls,
no database, no I/O). Every view resolves its filter chips and groups
people and hangouts through these helpers.
"""

from enum import Enum
from typing import Callable, Dict, Iterable, List, TypeVar

import pendulum
from pendulum import DateTime

from .models import TimeRange

T = TypeVar("T")


class TimeFilter(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    WEEKEND = "weekend"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Period(str, Enum):
    """
    Coarse part of the day. Values are lowercase; ``label`` is for display.
    """
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def hours(self) -> tuple[int, int]:
        """Half-open local hour bounds ``[start, end)``."""
        return _PERIOD_HOURS[self]

    @property
    def time_range_label(self) -> str:
        start, end = self.hours
        return f"{_hour_label(start)} - {_hour_label(end)}"


_PERIOD_HOURS = {
    Period.MORNING: (0, 12),
    Period.AFTERNOON: (12, 17),
    Period.EVENING: (17, 21),
    Period.NIGHT: (21, 24),
}


def _hour_label(hour: int) -> str:
    hour %= 24
    if hour == 0:
        return "12am"
    if hour == 12:
        return "12pm"
    if hour < 12:
        return f"{hour}am"
    return f"{hour - 12}pm"


def resolve_time_range(
    time_filter: TimeFilter | str,
    now: DateTime,
    *,
    include_current_weekend: bool = False
) -> TimeRange:
    """
    Map a filter chip to concrete whole-day bounds in ``now``'s timezone.

    Args:
        time_filter: today, tomorrow, weekend or custom
        now: Current instant; its timezone is the local timezone
        include_current_weekend: When False (the default), "weekend" on a
            Saturday means the Saturday a week later. When True, a Saturday
            or Sunday resolves to the weekend in progress.

    Returns:
        TimeRange from local midnight to end of day
    """
    time_filter = TimeFilter(time_filter)
    today = now.start_of("day")

    if time_filter is TimeFilter.TODAY:
        return TimeRange(start=today, end=today.end_of("day"))

    if time_filter is TimeFilter.TOMORROW:
        tomorrow = today.add(days=1)
        return TimeRange(start=tomorrow, end=tomorrow.end_of("day"))

    if time_filter is TimeFilter.WEEKEND:
        if include_current_weekend and now.day_of_week == pendulum.SATURDAY:
            saturday = today
        elif include_current_weekend and now.day_of_week == pendulum.SUNDAY:
            saturday = today.subtract(days=1)
        else:
            saturday = now.next(pendulum.SATURDAY).start_of("day")
        return TimeRange(start=saturday, end=saturday.add(days=1).end_of("day"))

    # custom: fallback window of a week
    return TimeRange(start=today, end=today.add(days=7).end_of("day"))


def bucket_period(instant: DateTime, timezone: str | None = None) -> Period:
    """
    Map an instant to its period by local hour.

    [0,12) morning, [12,17) afternoon, [17,21) evening, [21,24) night.
    """
    if timezone:
        instant = pendulum.instance(instant).in_timezone(timezone)

    hour = instant.hour
    for period, (start, end) in _PERIOD_HOURS.items():
        if start <= hour < end:
            return period

    raise ValueError(f"Hour out of range: {hour}")  # pragma: no cover


def period_range(period: Period, day: DateTime) -> TimeRange:
    """Concrete window of a period on the given day."""
    start_hour, end_hour = period.hours
    start = day.set(hour=start_hour, minute=0, second=0, microsecond=0)

    if end_hour >= 24:
        end = day.end_of("day")
    else:
        end = day.set(hour=end_hour, minute=0, second=0, microsecond=0)

    return TimeRange(start=start, end=end)


def periods_covered(time_range: TimeRange, within: TimeRange | None = None) -> List[Period]:
    """
    List the periods a range overlaps, in canonical order.

    A block from 10:00 to 19:00 covers morning, afternoon and evening.
    When ``within`` is given only the part of the range inside it counts.
    """
    if within is not None:
        clipped = time_range.intersect(within)
        if clipped is None:
            return []
        time_range = clipped

    covered: set[Period] = set()
    day = time_range.start.start_of("day")

    while day <= time_range.end:
        for period in Period:
            if period_range(period, day).overlaps(time_range):
                covered.add(period)
        day = day.add(days=1)

    return [period for period in Period if period in covered]


def group_by_period(
    items: Iterable[T],
    key: Callable[[T], Period | None]
) -> Dict[Period, List[T]]:
    """
    Group items by period, keeping every period key in canonical order.

    Items whose key is None are dropped. Input order is preserved inside
    each group.
    """
    grouped: Dict[Period, List[T]] = {period: [] for period in Period}

    for item in items:
        period = key(item)
        if period is not None:
            grouped[period].append(item)

    return grouped
