from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pandas as pd
from dateutil.relativedelta import relativedelta

from .calendar import DEFAULT_CALENDAR, WorkingCalendar
from .distribute import distribute
from .models import CASHFLOW_PERIODS, Allocation, AnalyticsConfig, Plan, Window
from .windows import clamp_to_window, hire_window, plan_horizon, usable_allocations

CASHFLOW_COLUMNS = ["period", "start", "end", "status", "baseline", "current"]
DAY_FMT = "%Y-%m-%d"
MONTH_FMT = "%Y-%m"


@dataclass
class CashflowBucket:
    period: str
    start: date
    end: date
    baseline: float = 0.0
    current: float = 0.0

    def status(self, today: date) -> str:
        if self.end < today:
            return "past"
        if self.start > today:
            return "future"
        return "mixed"


def _check_period(period: str) -> None:
    if period not in CASHFLOW_PERIODS:
        raise ValueError(f"unsupported cashflow period '{period}'")


def period_start(day: date, period: str) -> date:
    _check_period(period)
    if period == "week":
        return day - timedelta(days=day.weekday())
    if period == "month":
        return date(day.year, day.month, 1)
    return day


def period_end(start: date, period: str) -> date:
    if period == "week":
        return start + timedelta(days=6)
    if period == "month":
        return start + relativedelta(months=1) - timedelta(days=1)
    return start


def period_key(day: date, period: str) -> str:
    _check_period(period)
    if period == "week":
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == "month":
        return day.strftime(MONTH_FMT)
    return day.strftime(DAY_FMT)


def _next_period(start: date, period: str) -> date:
    if period == "week":
        return start + timedelta(days=7)
    if period == "month":
        return start + relativedelta(months=1)
    return start + timedelta(days=1)


def build_buckets(horizon: Window, period: str) -> Dict[str, CashflowBucket]:
    _check_period(period)
    buckets: Dict[str, CashflowBucket] = {}
    current = period_start(horizon.start.date(), period)
    last = horizon.end.date()
    while current <= last:
        key = period_key(current, period)
        buckets[key] = CashflowBucket(period=key, start=current, end=period_end(current, period))
        current = _next_period(current, period)
    return buckets


def _cost_spans(allocation: Allocation) -> Tuple[Tuple[datetime, datetime], Tuple[datetime, datetime]]:
    current = (allocation.start, allocation.end_or_start)
    baseline_start, baseline_end = allocation.effective_baseline_span()
    baseline = (baseline_start, baseline_end or baseline_start)
    return baseline, current


def _clamped(span: Tuple[datetime, datetime], hire: Window, horizon: Window) -> Optional[Tuple[datetime, datetime]]:
    within_hire = clamp_to_window(span[0], span[1], hire)
    if within_hire is None:
        return None
    return clamp_to_window(within_hire[0], within_hire[1], horizon)


def credit_allocations(
    plan: Plan,
    buckets: Dict[str, CashflowBucket],
    period: str,
    horizon: Window,
    calendar: WorkingCalendar = DEFAULT_CALENDAR,
) -> None:
    resources = plan.resource_lookup()
    hire_windows: Dict[str, Window] = {}
    for allocation in usable_allocations(plan):
        resource_id = allocation.resource_id
        if resource_id not in hire_windows:
            hire_windows[resource_id] = hire_window(plan, resources[resource_id], horizon)
        hire = hire_windows[resource_id]
        baseline_span, current_span = _cost_spans(allocation)
        clamped_baseline = _clamped(baseline_span, hire, horizon)
        if clamped_baseline is not None:
            amount = float(allocation.baseline_cost or 0.0)
            for day, share in distribute(amount, *clamped_baseline, calendar=calendar):
                buckets[period_key(day, period)].baseline += share
        clamped_current = _clamped(current_span, hire, horizon)
        if clamped_current is not None:
            amount = float(allocation.cost or 0.0)
            for day, share in distribute(amount, *clamped_current, calendar=calendar):
                buckets[period_key(day, period)].current += share


def build_cashflow(
    plan: Plan,
    period: str,
    today: date,
    config: Optional[AnalyticsConfig] = None,
) -> pd.DataFrame:
    """Baseline and current cost per day/week/month bucket across the plan horizon."""
    _check_period(period)
    horizon = plan_horizon(plan, today)
    if horizon.is_empty:
        return pd.DataFrame([], columns=CASHFLOW_COLUMNS)
    calendar = WorkingCalendar.from_config(config) if config else DEFAULT_CALENDAR
    buckets = build_buckets(horizon, period)
    credit_allocations(plan, buckets, period, horizon, calendar)
    rows: List[Dict[str, object]] = [
        {
            "period": bucket.period,
            "start": bucket.start,
            "end": bucket.end,
            "status": bucket.status(today),
            "baseline": bucket.baseline,
            "current": bucket.current,
        }
        for bucket in sorted(buckets.values(), key=lambda b: b.start)
    ]
    return pd.DataFrame(rows, columns=CASHFLOW_COLUMNS)


def cashflow_totals(buckets: pd.DataFrame) -> Dict[str, float]:
    if buckets.empty:
        return {"baseline": 0.0, "current": 0.0}
    return {
        "baseline": float(buckets["baseline"].sum()),
        "current": float(buckets["current"].sum()),
    }
