from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from .calendar import DEFAULT_CALENDAR, WorkingCalendar


def normalize_weights(seq: Sequence[float]) -> List[float]:
    """Scale non-negative weights to sum to 1; all-zero input yields an empty list."""
    values = [float(x) for x in seq]
    if any(v < 0 for v in values):
        raise ValueError("weights must be non-negative")
    total = sum(values)
    if total <= 0:
        return []
    return [v / total for v in values]


def day_weights(
    start: datetime,
    end: datetime,
    calendar: WorkingCalendar = DEFAULT_CALENDAR,
) -> List[Tuple[date, float]]:
    return [(day, calendar.capacity_hours(day)) for day in calendar.iter_days(start, end)]


def distribute(
    total: float,
    start: datetime,
    end: datetime,
    calendar: Optional[WorkingCalendar] = None,
) -> List[Tuple[date, float]]:
    calendar = calendar or DEFAULT_CALENDAR
    weighted = [(day, hours) for day, hours in day_weights(start, end, calendar) if hours > 0]
    shares = normalize_weights([hours for _, hours in weighted])
    if not shares:
        return []
    return [(day, total * share) for (day, _), share in zip(weighted, shares)]
