from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional, Sequence, Union

from .models import DEFAULT_HOURS_BY_WEEKDAY, AnalyticsConfig

DayLike = Union[date, datetime]


def _as_day(value: DayLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class WorkingCalendar:
    """Working-hour capacity per calendar day, indexed by weekday (Monday first)."""

    def __init__(
        self,
        hours_by_weekday: Sequence[float] = DEFAULT_HOURS_BY_WEEKDAY,
        holidays: Optional[Iterable[date]] = None,
    ) -> None:
        hours = [float(value) for value in hours_by_weekday]
        if len(hours) != 7:
            raise ValueError("hours_by_weekday must contain exactly 7 values")
        if any(value < 0 for value in hours):
            raise ValueError("hours_by_weekday values must be non-negative")
        self._hours = tuple(hours)
        self._holidays = frozenset(holidays or ())

    @classmethod
    def from_config(cls, config: AnalyticsConfig) -> "WorkingCalendar":
        return cls(config.hours_by_weekday, config.holidays)

    def capacity_hours(self, day: DayLike) -> float:
        day = _as_day(day)
        if day in self._holidays:
            return 0.0
        return self._hours[day.weekday()]

    def iter_days(self, start: DayLike, end: DayLike) -> Iterator[date]:
        current = _as_day(start)
        last = _as_day(end)
        while current <= last:
            yield current
            current += timedelta(days=1)

    def total_hours(self, start: DayLike, end: DayLike) -> float:
        return sum(self.capacity_hours(day) for day in self.iter_days(start, end))


DEFAULT_CALENDAR = WorkingCalendar()
