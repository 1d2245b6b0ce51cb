from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from itertools import groupby
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .models import OverbookingBand, Plan, iter_ranged
from .windows import usable_allocations

logger = logging.getLogger(__name__)

BAND_COLUMNS = ["resource_id", "resource_name", "start", "end"]

LoadEvent = Tuple[datetime, int, float]


def _load_events(plan: Plan) -> Dict[str, List[LoadEvent]]:
    events: Dict[str, List[LoadEvent]] = defaultdict(list)
    for allocation in iter_ranged(usable_allocations(plan)):
        pct = float(allocation.allocation_pct)
        # 0 sorts starts ahead of ends at the same instant.
        events[allocation.resource_id].append((allocation.start, 0, pct))
        events[allocation.resource_id].append((allocation.end, 1, -pct))
    for resource_events in events.values():
        resource_events.sort(key=lambda event: (event[0], event[1]))
    return events


def _sweep(resource_id: str, events: List[LoadEvent], threshold: float) -> List[OverbookingBand]:
    bands: List[OverbookingBand] = []
    load = 0.0
    band_start: Optional[datetime] = None
    # Threshold crossings are evaluated once all events at an instant are applied,
    # so a hand-over at the same instant never opens a zero-length band.
    for instant, grouped in groupby(events, key=lambda event: event[0]):
        previous = load
        for _, _, delta in grouped:
            load += delta
        if previous <= threshold < load:
            band_start = instant
        elif previous > threshold >= load and band_start is not None:
            bands.append(OverbookingBand(resource_id=resource_id, start=band_start, end=instant))
            band_start = None
    if band_start is not None:
        logger.warning("overbooking band for %s never closed; discarding", resource_id)
    return bands


def find_overbooking_bands(plan: Plan, threshold_pct: float = 100.0) -> List[OverbookingBand]:
    bands: List[OverbookingBand] = []
    for resource_id, events in sorted(_load_events(plan).items()):
        bands.extend(_sweep(resource_id, events, threshold_pct))
    return bands


def build_overbooking_bands(plan: Plan, threshold_pct: float = 100.0) -> pd.DataFrame:
    resources = plan.resource_lookup()
    rows = [
        {
            "resource_id": band.resource_id,
            "resource_name": resources[band.resource_id].name,
            "start": band.start,
            "end": band.end,
        }
        for band in find_overbooking_bands(plan, threshold_pct)
    ]
    return pd.DataFrame(rows, columns=BAND_COLUMNS)


def has_clash(
    plan: Plan,
    resource_id: str,
    start: datetime,
    end: datetime,
    ignore_id: Optional[str] = None,
) -> bool:
    for allocation in iter_ranged(plan.allocations_for(resource_id)):
        if allocation.id == ignore_id:
            continue
        if not (end <= allocation.start or start >= allocation.end):
            return True
    return False
