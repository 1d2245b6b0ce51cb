from __future__ import annotations

from datetime import datetime

from .models import Plan, ScheduleCounts, ScheduleVariance
from .windows import usable_allocations

SECONDS_PER_DAY = 86400.0


def schedule_variance(plan: Plan) -> ScheduleVariance:
    """Compare actual vs. baseline extremes; early finishes floor at zero days."""
    allocations = usable_allocations(plan)
    if not allocations:
        return ScheduleVariance(None, None, None, None, 0.0)
    actual_start = min(a.start for a in allocations)
    actual_end = max(a.end_or_start for a in allocations)
    baseline_start = min(a.baseline_start or a.start for a in allocations)
    baseline_end = max(a.baseline_end or a.start for a in allocations)
    lateness = (actual_end - baseline_end).total_seconds() / SECONDS_PER_DAY
    return ScheduleVariance(
        actual_start=actual_start,
        actual_end=actual_end,
        baseline_start=baseline_start,
        baseline_end=baseline_end,
        variance_days=max(0.0, lateness),
    )


def delay_days(plan: Plan) -> float:
    total = 0.0
    for allocation in usable_allocations(plan):
        if allocation.end is None or allocation.baseline_end is None:
            continue
        if allocation.end > allocation.baseline_end:
            total += (allocation.end - allocation.baseline_end).total_seconds() / SECONDS_PER_DAY
    return total


def resource_schedule_counts(plan: Plan, resource_id: str, now: datetime) -> ScheduleCounts:
    counts = ScheduleCounts()
    for allocation in usable_allocations(plan):
        if allocation.resource_id != resource_id:
            continue
        started = allocation.start < now
        if allocation.baseline_start is not None:
            if allocation.start > allocation.baseline_start:
                if started:
                    counts.start_late += 1
                else:
                    counts.will_start_late += 1
            elif allocation.start < allocation.baseline_start:
                if started:
                    counts.start_early += 1
                else:
                    counts.will_start_early += 1
        if allocation.end is None or allocation.baseline_end is None:
            continue
        finished = allocation.end < now
        if allocation.end > allocation.baseline_end:
            if finished:
                counts.finish_late += 1
            else:
                counts.will_finish_late += 1
        elif allocation.end < allocation.baseline_end:
            if finished:
                counts.finish_early += 1
            else:
                counts.will_finish_early += 1
    return counts
