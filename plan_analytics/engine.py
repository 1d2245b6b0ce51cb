from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import asdict
from datetime import date, datetime
from typing import Callable, Dict, Hashable, Optional, Tuple

import pandas as pd

from .calendar import WorkingCalendar
from .cashflow import build_cashflow, cashflow_totals
from .costs import budget_delta, build_budget_table, resource_cost_metrics
from .models import AnalyticsConfig, KpiSummary, Plan, Window
from .overbooking import build_overbooking_bands
from .schedule import delay_days, resource_schedule_counts, schedule_variance
from .usage import build_daily_usage, build_daily_usage_from, count_milestones, over_capacity_resources
from .utilization import (
    average_utilization,
    build_idle_gaps,
    build_utilization,
    overtime_hours,
    resource_hours,
    total_idle_hours,
    used_resource_ids,
    utilization_pct,
)
from .windows import usable_allocations

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, Tuple[Hashable, ...]]


class AnalyticsEngine:
    """KPI tables for plan snapshots, memoized by snapshot content hash.

    Every call recomputes from the full snapshot unless an identical snapshot
    (same fingerprint) was already evaluated with the same arguments. Edited
    plans hash differently, so stale entries are never served.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None) -> None:
        self.config = config or AnalyticsConfig()
        self.calendar = WorkingCalendar.from_config(self.config)
        self._cache: "OrderedDict[CacheKey, object]" = OrderedDict()

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def _memo(self, plan: Plan, operation: str, args: Tuple[Hashable, ...], compute: Callable[[], object]) -> object:
        key: CacheKey = (plan.fingerprint(), operation, args)
        if key in self._cache:
            logger.debug("cache hit for %s%s", operation, args)
            self._cache.move_to_end(key)
            return self._cache[key]
        value = compute()
        self._cache[key] = value
        while len(self._cache) > max(self.config.cache_size, 0):
            self._cache.popitem(last=False)
        return value

    def _table(self, plan: Plan, operation: str, args: Tuple[Hashable, ...], compute: Callable[[], pd.DataFrame]) -> pd.DataFrame:
        table = self._memo(plan, operation, args, compute)
        return table.copy()  # type: ignore[union-attr]

    def daily_usage(self, plan: Plan, from_day: Optional[date] = None) -> pd.DataFrame:
        if from_day is None:
            return self._table(plan, "daily_usage", (), lambda: build_daily_usage(plan, self.config))
        return self._table(
            plan,
            "daily_usage_from",
            (from_day,),
            lambda: build_daily_usage_from(plan, from_day, self.config),
        )

    def overbooking_bands(self, plan: Plan) -> pd.DataFrame:
        threshold = self.config.overbooking_threshold_pct
        return self._table(plan, "overbooking", (threshold,), lambda: build_overbooking_bands(plan, threshold))

    def utilization(self, plan: Plan, today: date, mode: str = "all") -> pd.DataFrame:
        return self._table(
            plan,
            "utilization",
            (today, mode),
            lambda: build_utilization(plan, today, mode, self.config),
        )

    def idle_gaps(self, plan: Plan) -> pd.DataFrame:
        return self._table(plan, "idle_gaps", (), lambda: build_idle_gaps(plan))

    def budget(self, plan: Plan, now: datetime) -> pd.DataFrame:
        return self._table(plan, "budget", (now,), lambda: build_budget_table(plan, now))

    def cashflow(self, plan: Plan, today: date, period: Optional[str] = None) -> pd.DataFrame:
        period = period or self.config.cashflow_period
        return self._table(
            plan,
            "cashflow",
            (today, period),
            lambda: build_cashflow(plan, period, today, self.config),
        )

    def kpi_summary(self, plan: Plan, now: datetime) -> KpiSummary:
        return self._memo(plan, "kpi_summary", (now,), lambda: self._compute_summary(plan, now))  # type: ignore[return-value]

    def _compute_summary(self, plan: Plan, now: datetime) -> KpiSummary:
        today = now.date()
        used = used_resource_ids(plan)
        threshold = self.config.overbooking_threshold_pct
        util_all = self.utilization(plan, today, "all")
        util_future = self.utilization(plan, today, "future")
        over_all = over_capacity_resources(self.daily_usage(plan), threshold)
        over_future = over_capacity_resources(self.daily_usage(plan, today), threshold)
        cashflow = self.cashflow(plan, today, "month")
        return KpiSummary(
            utilization_all=average_utilization(util_all, used),
            utilization_future=average_utilization(util_future, used),
            idle_hours_all=total_idle_hours(util_all, used),
            idle_hours_future=total_idle_hours(util_future, used),
            over_capacity_all=len(over_all),
            over_capacity_future=len(over_future),
            delay_days=delay_days(plan),
            budget_delta=budget_delta(plan),
            cashflow_total=cashflow_totals(cashflow)["current"],
            milestones=count_milestones(plan),
            schedule=schedule_variance(plan),
            over_capacity_ids=tuple(sorted(over_all)),
        )

    def resource_overview(self, plan: Plan, resource_id: str, now: datetime) -> Dict[str, object]:
        resource = plan.resource_lookup().get(resource_id)
        if resource is None:
            raise KeyError(f"unknown resource '{resource_id}'")
        today = now.date()
        util_row = self.utilization(plan, today, "all").set_index("resource_id").loc[resource_id]
        owned = [a for a in usable_allocations(plan) if a.resource_id == resource_id]
        span_pct = 0.0
        if owned:
            span = Window(
                start=min(a.start for a in owned),
                end=max(a.end_or_start for a in owned),
            )
            booked, capacity = resource_hours(plan, resource, span, self.calendar)
            span_pct = utilization_pct(booked, capacity)
        costs = resource_cost_metrics(plan, resource_id, now)
        return {
            "id": resource.id,
            "name": resource.name,
            "class": resource.resource_class,
            "rate": resource.cost_per_hour,
            "cost": {
                "spent": costs.spent,
                "spent_baseline": costs.spent_baseline,
                "variance_to_date": costs.variance_to_date,
                "future": costs.future,
                "future_baseline": costs.future_baseline,
                "future_variance": costs.future_variance,
                "budget": costs.budget,
                "variance": costs.variance,
            },
            "schedule": asdict(resource_schedule_counts(plan, resource_id, now)),
            "utilization": {
                "all_pct": float(util_row["pct"]),
                "span_pct": span_pct,
                "overtime_hours": overtime_hours(plan, resource_id, self.config),
            },
        }
