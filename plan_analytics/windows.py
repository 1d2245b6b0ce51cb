from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from .models import Allocation, Plan, Resource, Window

logger = logging.getLogger(__name__)


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def usable_allocations(plan: Plan) -> List[Allocation]:
    """Allocations that have a start and point at a known resource."""
    known = plan.resource_lookup()
    usable: List[Allocation] = []
    for allocation in plan.allocations:
        if getattr(allocation, "start", None) is None:
            logger.debug("skipping allocation %s without start", allocation.id)
            continue
        if allocation.resource_id not in known:
            logger.debug(
                "skipping allocation %s: unknown resource %s",
                allocation.id,
                allocation.resource_id,
            )
            continue
        usable.append(allocation)
    return usable


def allocation_span(plan: Plan) -> Optional[Window]:
    """Earliest start to latest end over usable allocations; None for an empty plan."""
    allocations = usable_allocations(plan)
    if not allocations:
        return None
    start = min(a.start for a in allocations)
    end = max(a.end_or_start for a in allocations)
    return Window(start=start, end=end)


def plan_horizon(plan: Plan, today: date) -> Window:
    span = allocation_span(plan)
    if span is None:
        anchor = datetime.combine(today, time.min)
        return Window(start=anchor, end=end_of_day(anchor), is_empty=True)
    return span


def hire_window(plan: Plan, resource: Resource, horizon: Window) -> Window:
    start = resource.start
    end = resource.end
    if start is None or end is None:
        owned = [a for a in usable_allocations(plan) if a.resource_id == resource.id]
        if start is None and owned:
            start = min(a.start for a in owned)
        if end is None and owned:
            end = max(a.end_or_start for a in owned)
    if start is None:
        start = horizon.start
    if end is None:
        end = horizon.end
    return Window(start=start_of_day(start), end=end_of_day(end))


def clamp(
    a_start: datetime,
    a_end: datetime,
    w_start: datetime,
    w_end: datetime,
) -> Optional[Tuple[datetime, datetime]]:
    start = max(a_start, w_start)
    end = min(a_end, w_end)
    if start > end:
        return None
    return start, end


def clamp_to_window(start: datetime, end: datetime, window: Window) -> Optional[Tuple[datetime, datetime]]:
    return clamp(start, end, window.start, window.end)
