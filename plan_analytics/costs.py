from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .models import Allocation, CostSplit, Plan, ResourceCostMetrics
from .windows import usable_allocations

BUDGET_COLUMNS = [
    "resource_id",
    "resource_name",
    "budget",
    "spent",
    "remaining",
    "variance",
]
TOTAL_ROW_ID = "TOTAL"


def split_cost(
    amount: float,
    start: datetime,
    end: Optional[datetime],
    now: datetime,
) -> Tuple[float, float]:
    """Split ``amount`` into (incurred, remaining) by elapsed time at ``now``."""
    if amount == 0:
        return 0.0, 0.0
    if now < start:
        return 0.0, amount
    if end is None or now >= end:
        return amount, 0.0
    duration = (end - start).total_seconds()
    elapsed = (now - start).total_seconds()
    ratio = min(1.0, max(0.0, elapsed / duration)) if duration > 0 else 1.0
    return amount * ratio, amount * (1.0 - ratio)


def split_allocation(allocation: Allocation, now: datetime) -> CostSplit:
    incurred, remaining = split_cost(float(allocation.cost or 0.0), allocation.start, allocation.end, now)
    baseline_start, baseline_end = allocation.effective_baseline_span()
    incurred_base, remaining_base = split_cost(
        float(allocation.baseline_cost or 0.0), baseline_start, baseline_end, now
    )
    return CostSplit(
        incurred_actual=incurred,
        remaining_actual=remaining,
        incurred_baseline=incurred_base,
        remaining_baseline=remaining_base,
    )


def resource_cost_metrics(plan: Plan, resource_id: str, now: datetime) -> ResourceCostMetrics:
    spent = future = spent_base = future_base = 0.0
    for allocation in usable_allocations(plan):
        if allocation.resource_id != resource_id:
            continue
        split = split_allocation(allocation, now)
        spent += split.incurred_actual
        future += split.remaining_actual
        spent_base += split.incurred_baseline
        future_base += split.remaining_baseline
    return ResourceCostMetrics(
        resource_id=resource_id,
        spent=spent,
        future=future,
        spent_baseline=spent_base,
        future_baseline=future_base,
    )


def build_budget_table(plan: Plan, now: datetime, *, include_total: bool = True) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for resource in plan.resources:
        metrics = resource_cost_metrics(plan, resource.id, now)
        rows.append(
            {
                "resource_id": resource.id,
                "resource_name": resource.name,
                "budget": metrics.budget,
                "spent": metrics.spent,
                "remaining": metrics.future,
                "variance": metrics.variance,
            }
        )
    if include_total:
        totals = {key: sum(float(row[key]) for row in rows) for key in ("budget", "spent", "remaining", "variance")}
        rows.append({"resource_id": TOTAL_ROW_ID, "resource_name": "Total", **totals})
    return pd.DataFrame(rows, columns=BUDGET_COLUMNS)


def budget_delta(plan: Plan) -> float:
    delta = 0.0
    for allocation in usable_allocations(plan):
        if allocation.baseline_cost is None:
            continue
        delta += float(allocation.cost or 0.0) - float(allocation.baseline_cost)
    return delta
