from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union


DEFAULT_HOURS_BY_WEEKDAY: Tuple[float, ...] = (8.0, 8.0, 8.0, 8.0, 8.0, 4.0, 0.0)
CASHFLOW_PERIODS = ("day", "week", "month")
UTILIZATION_MODES = ("all", "future")


@dataclass(frozen=True)
class Resource:
    """A bookable person or piece of equipment with an optional hire window."""

    id: str
    name: str
    resource_class: str = ""
    cost_per_hour: float = 0.0
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    description: str = ""


@dataclass(frozen=True)
class RangedAllocation:
    id: str
    resource_id: str
    start: datetime
    end: datetime
    allocation_pct: float = 100.0
    label: str = ""
    cost: float = 0.0
    baseline_start: Optional[datetime] = None
    baseline_end: Optional[datetime] = None
    baseline_cost: Optional[float] = None

    @property
    def is_milestone(self) -> bool:
        return False

    @property
    def end_or_start(self) -> datetime:
        return self.end

    def effective_baseline_span(self) -> Tuple[datetime, Optional[datetime]]:
        return (self.baseline_start or self.start, self.baseline_end or self.end)

    def capture_baseline(self) -> "RangedAllocation":
        return replace(
            self,
            baseline_start=self.baseline_start or self.start,
            baseline_end=self.baseline_end or self.end,
            baseline_cost=self.cost if self.baseline_cost is None else self.baseline_cost,
        )

    def reset_baseline(self) -> "RangedAllocation":
        return replace(
            self,
            baseline_start=self.start,
            baseline_end=self.end,
            baseline_cost=self.cost,
        )


@dataclass(frozen=True)
class Milestone:
    """Zero-duration marker: carries cost and baseline but never load or hours."""

    id: str
    resource_id: str
    start: datetime
    allocation_pct: float = 100.0
    label: str = ""
    cost: float = 0.0
    baseline_start: Optional[datetime] = None
    baseline_end: Optional[datetime] = None
    baseline_cost: Optional[float] = None

    @property
    def is_milestone(self) -> bool:
        return True

    @property
    def end(self) -> None:
        return None

    @property
    def end_or_start(self) -> datetime:
        return self.start

    def effective_baseline_span(self) -> Tuple[datetime, Optional[datetime]]:
        return (self.baseline_start or self.start, self.baseline_end)

    def capture_baseline(self) -> "Milestone":
        return replace(
            self,
            baseline_start=self.baseline_start or self.start,
            baseline_cost=self.cost if self.baseline_cost is None else self.baseline_cost,
        )

    def reset_baseline(self) -> "Milestone":
        return replace(
            self,
            baseline_start=self.start,
            baseline_end=None,
            baseline_cost=self.cost,
        )


Allocation = Union[RangedAllocation, Milestone]


@dataclass(frozen=True)
class Plan:
    """Immutable snapshot of a planner document."""

    name: str
    resources: Tuple[Resource, ...] = ()
    allocations: Tuple[Allocation, ...] = ()
    meta: Tuple[Tuple[str, str], ...] = ()

    def resource_lookup(self) -> Dict[str, Resource]:
        return {resource.id: resource for resource in self.resources}

    def allocations_for(self, resource_id: str) -> List[Allocation]:
        return [a for a in self.allocations if a.resource_id == resource_id]

    def fingerprint(self) -> str:
        payload = {
            "name": self.name,
            "meta": list(self.meta),
            "resources": [asdict(r) for r in self.resources],
            "allocations": [
                dict(asdict(a), kind="milestone" if a.is_milestone else "ranged")
                for a in self.allocations
            ],
        }
        rendered = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(rendered.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AnalyticsConfig:
    hours_by_weekday: Tuple[float, ...] = DEFAULT_HOURS_BY_WEEKDAY
    holidays: FrozenSet[date] = frozenset()
    overbooking_threshold_pct: float = 100.0
    cashflow_period: str = "month"
    logging_level: str = "INFO"
    cache_size: int = 64


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime
    is_empty: bool = False


@dataclass(frozen=True)
class OverbookingBand:
    resource_id: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CostSplit:
    incurred_actual: float
    remaining_actual: float
    incurred_baseline: float
    remaining_baseline: float


@dataclass(frozen=True)
class ResourceCostMetrics:
    resource_id: str
    spent: float = 0.0
    future: float = 0.0
    spent_baseline: float = 0.0
    future_baseline: float = 0.0

    @property
    def budget(self) -> float:
        return self.spent_baseline + self.future_baseline

    @property
    def variance(self) -> float:
        return self.budget - (self.spent + self.future)

    @property
    def variance_to_date(self) -> float:
        return self.spent - self.spent_baseline

    @property
    def future_variance(self) -> float:
        return self.future - self.future_baseline


@dataclass(frozen=True)
class ScheduleVariance:
    actual_start: Optional[datetime]
    actual_end: Optional[datetime]
    baseline_start: Optional[datetime]
    baseline_end: Optional[datetime]
    variance_days: float = 0.0


@dataclass
class ScheduleCounts:
    start_late: int = 0
    start_early: int = 0
    finish_late: int = 0
    finish_early: int = 0
    will_start_late: int = 0
    will_start_early: int = 0
    will_finish_late: int = 0
    will_finish_early: int = 0


@dataclass(frozen=True)
class KpiSummary:
    utilization_all: float
    utilization_future: float
    idle_hours_all: float
    idle_hours_future: float
    over_capacity_all: int
    over_capacity_future: int
    delay_days: float
    budget_delta: float
    cashflow_total: float
    milestones: int
    schedule: ScheduleVariance
    over_capacity_ids: Tuple[str, ...] = field(default_factory=tuple)


def iter_ranged(allocations: Iterable[Allocation]) -> Iterable[RangedAllocation]:
    for allocation in allocations:
        if not allocation.is_milestone:
            yield allocation  # type: ignore[misc]
