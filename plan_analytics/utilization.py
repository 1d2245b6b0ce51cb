from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd

from .calendar import DEFAULT_CALENDAR, WorkingCalendar
from .models import UTILIZATION_MODES, AnalyticsConfig, Plan, Resource, Window, iter_ranged
from .usage import build_daily_usage
from .windows import clamp_to_window, hire_window, plan_horizon, usable_allocations

UTILIZATION_COLUMNS = [
    "resource_id",
    "resource_name",
    "booked_hours",
    "available_hours",
    "pct",
    "idle_hours",
]
IDLE_GAP_COLUMNS = ["resource_id", "resource_name", "hours"]


def _calendar(config: Optional[AnalyticsConfig]) -> WorkingCalendar:
    return WorkingCalendar.from_config(config) if config else DEFAULT_CALENDAR


def measurement_window(
    plan: Plan,
    resource: Resource,
    mode: str,
    today: date,
    horizon: Optional[Window] = None,
) -> Optional[Window]:
    """Hire window, optionally narrowed to [today, horizon end]; None when nothing is left."""
    if mode not in UTILIZATION_MODES:
        raise ValueError(f"unsupported utilization mode '{mode}'")
    horizon = horizon or plan_horizon(plan, today)
    if horizon.is_empty and (resource.start is None or resource.end is None):
        # no allocations to derive a window from
        return None
    window = hire_window(plan, resource, horizon)
    if mode == "all":
        return window
    span = clamp_to_window(datetime.combine(today, time.min), horizon.end, window)
    if span is None:
        return None
    return Window(start=span[0], end=span[1])


def resource_hours(
    plan: Plan,
    resource: Resource,
    window: Optional[Window],
    calendar: WorkingCalendar = DEFAULT_CALENDAR,
) -> Tuple[float, float]:
    """Return (booked, capacity) hours for one resource inside ``window``."""
    if window is None:
        return 0.0, 0.0
    capacity = calendar.total_hours(window.start, window.end)
    booked = 0.0
    for allocation in iter_ranged(usable_allocations(plan)):
        if allocation.resource_id != resource.id:
            continue
        span = clamp_to_window(allocation.start, allocation.end, window)
        if span is None:
            continue
        booked += calendar.total_hours(*span) * float(allocation.allocation_pct) / 100.0
    return booked, capacity


def utilization_pct(booked: float, capacity: float) -> float:
    return round(100.0 * booked / max(capacity, 1.0), 1)


def build_utilization(
    plan: Plan,
    today: date,
    mode: str = "all",
    config: Optional[AnalyticsConfig] = None,
) -> pd.DataFrame:
    calendar = _calendar(config)
    horizon = plan_horizon(plan, today)
    rows: List[Dict[str, object]] = []
    for resource in plan.resources:
        window = measurement_window(plan, resource, mode, today, horizon)
        booked, capacity = resource_hours(plan, resource, window, calendar)
        rows.append(
            {
                "resource_id": resource.id,
                "resource_name": resource.name,
                "booked_hours": booked,
                "available_hours": capacity,
                "pct": utilization_pct(booked, capacity),
                "idle_hours": capacity - booked,
            }
        )
    return pd.DataFrame(rows, columns=UTILIZATION_COLUMNS)


def used_resource_ids(plan: Plan) -> Set[str]:
    return {allocation.resource_id for allocation in usable_allocations(plan)}


def average_utilization(utilization: pd.DataFrame, resource_ids: Iterable[str]) -> float:
    ids = set(resource_ids)
    if utilization.empty or not ids:
        return 0.0
    subset = utilization[utilization["resource_id"].isin(ids)]
    return utilization_pct(float(subset["booked_hours"].sum()), float(subset["available_hours"].sum()))


def total_idle_hours(utilization: pd.DataFrame, resource_ids: Iterable[str]) -> float:
    ids = set(resource_ids)
    if utilization.empty or not ids:
        return 0.0
    subset = utilization[utilization["resource_id"].isin(ids)]
    return float(subset["idle_hours"].sum())


def overtime_hours(
    plan: Plan,
    resource_id: str,
    config: Optional[AnalyticsConfig] = None,
    from_day: Optional[date] = None,
) -> float:
    calendar = _calendar(config)
    daily = build_daily_usage(plan, config)
    if daily.empty:
        return 0.0
    daily = daily[daily["resource_id"] == resource_id]
    if from_day is not None:
        daily = daily[daily["day"] >= from_day]
    total = 0.0
    for row in daily.itertuples(index=False):
        if row.pct > 100.0:
            total += (row.pct - 100.0) / 100.0 * calendar.capacity_hours(row.day)
    return total


def build_idle_gaps(plan: Plan) -> pd.DataFrame:
    """Hours between consecutive ranged allocations of the same resource."""
    names = plan.resource_lookup()
    by_resource: Dict[str, list] = {}
    for allocation in iter_ranged(usable_allocations(plan)):
        by_resource.setdefault(allocation.resource_id, []).append(allocation)
    rows: List[Dict[str, object]] = []
    for resource_id in sorted(by_resource):
        ordered = sorted(by_resource[resource_id], key=lambda a: a.start)
        for current, following in zip(ordered, ordered[1:]):
            gap = (following.start - current.end).total_seconds() / 3600.0
            if gap < 0:
                continue
            rows.append(
                {
                    "resource_id": resource_id,
                    "resource_name": names[resource_id].name,
                    "hours": round(gap, 1),
                }
            )
    return pd.DataFrame(rows, columns=IDLE_GAP_COLUMNS)
