from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Optional, Set, Tuple

import pandas as pd

from .calendar import DEFAULT_CALENDAR, WorkingCalendar
from .models import Allocation, AnalyticsConfig, Plan, iter_ranged
from .windows import allocation_span, clamp_to_window, hire_window, usable_allocations

DAILY_USAGE_COLUMNS = ["resource_id", "resource_name", "day", "pct"]


def _daily_usage_cells(plan: Plan, calendar: WorkingCalendar) -> Dict[Tuple[str, date], float]:
    cells: Dict[Tuple[str, date], float] = defaultdict(float)
    resources = plan.resource_lookup()
    horizon = allocation_span(plan)
    if horizon is None:
        return cells
    windows = {}
    for allocation in iter_ranged(usable_allocations(plan)):
        resource_id = allocation.resource_id
        if resource_id not in windows:
            windows[resource_id] = hire_window(plan, resources[resource_id], horizon)
        span = clamp_to_window(allocation.start, allocation.end, windows[resource_id])
        if span is None:
            continue
        for day in calendar.iter_days(*span):
            cells[(resource_id, day)] += float(allocation.allocation_pct)
    return cells


def build_daily_usage(plan: Plan, config: Optional[AnalyticsConfig] = None) -> pd.DataFrame:
    """Summed load percentage per (resource, day), stacking overlaps above 100."""
    calendar = WorkingCalendar.from_config(config) if config else DEFAULT_CALENDAR
    resources = plan.resource_lookup()
    rows = [
        {
            "resource_id": resource_id,
            "resource_name": resources[resource_id].name,
            "day": day,
            "pct": round(pct, 1),
        }
        for (resource_id, day), pct in _daily_usage_cells(plan, calendar).items()
    ]
    rows.sort(key=lambda row: (row["day"], row["resource_name"], row["resource_id"]))
    return pd.DataFrame(rows, columns=DAILY_USAGE_COLUMNS)


def build_daily_usage_from(
    plan: Plan,
    from_day: date,
    config: Optional[AnalyticsConfig] = None,
) -> pd.DataFrame:
    daily = build_daily_usage(plan, config)
    if daily.empty:
        return daily
    return daily[daily["day"] >= from_day].reset_index(drop=True)


def over_capacity_resources(daily: pd.DataFrame, threshold_pct: float = 100.0) -> Set[str]:
    if daily.empty:
        return set()
    return set(daily.loc[daily["pct"] > threshold_pct, "resource_id"])


def planned_hours(allocation: Allocation, calendar: Optional[WorkingCalendar] = None) -> float:
    if allocation.is_milestone:
        return 0.0
    calendar = calendar or DEFAULT_CALENDAR
    capacity = calendar.total_hours(allocation.start, allocation.end)
    return capacity * float(allocation.allocation_pct) / 100.0


def allocation_cost(
    allocation: Allocation,
    plan: Plan,
    calendar: Optional[WorkingCalendar] = None,
) -> float:
    resource = plan.resource_lookup().get(allocation.resource_id)
    rate = resource.cost_per_hour if resource else 0.0
    return round(planned_hours(allocation, calendar) * rate, 2)


def count_milestones(plan: Plan) -> int:
    return sum(1 for allocation in plan.allocations if allocation.is_milestone)
