from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from dateutil import parser as dateparser

from .models import (
    CASHFLOW_PERIODS,
    DEFAULT_HOURS_BY_WEEKDAY,
    Allocation,
    AnalyticsConfig,
    Milestone,
    Plan,
    RangedAllocation,
    Resource,
)

logger = logging.getLogger(__name__)

PLAN_VERSION = "1.2"
MIN_ISO_LENGTH = 10


def _parse_instant(value: object, field_name: str) -> datetime:
    try:
        parsed = dateparser.isoparse(str(value))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid timestamp in '{field_name}': {value}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_optional_instant(value: object, field_name: str) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    return _parse_instant(value, field_name)


def _format_instant(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"


def _optional_float(value: object) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def migrate_plan(data: Dict[str, object]) -> Dict[str, object]:
    """Bring older plan documents up to the current field set in place."""
    for resource in data.get("resources") or []:
        if isinstance(resource, dict) and resource.get("cost_per_hour") is None:
            resource["cost_per_hour"] = 0
    for allocation in data.get("allocations") or []:
        if not isinstance(allocation, dict):
            continue
        if allocation.get("baseline_start") is None:
            allocation["baseline_start"] = allocation.get("start")
        if allocation.get("cost") is None:
            allocation["cost"] = 0
        if allocation.get("cost") and allocation.get("baseline_cost") is None:
            allocation["baseline_cost"] = allocation["cost"]
    meta = data.setdefault("meta", {})
    if isinstance(meta, dict):
        meta["version"] = PLAN_VERSION
    return data


def _has_usable_start(allocation: object) -> bool:
    if not isinstance(allocation, dict):
        return False
    start = allocation.get("start")
    if not isinstance(start, str) or len(start) < MIN_ISO_LENGTH:
        return False
    try:
        dateparser.isoparse(start)
    except (ValueError, TypeError):
        return False
    return True


def sanitize_plan(data: Dict[str, object]) -> int:
    """Drop allocations without a usable start; returns how many were removed."""
    allocations = data.get("allocations") or []
    kept = [allocation for allocation in allocations if _has_usable_start(allocation)]
    removed = len(allocations) - len(kept)
    data["allocations"] = kept
    if removed:
        logger.warning("%d corrupted allocations were removed while loading", removed)
    return removed


def _resource_from_dict(entry: Dict[str, object]) -> Resource:
    if not entry.get("id"):
        raise ValueError("resource id is required")
    return Resource(
        id=str(entry["id"]),
        name=str(entry.get("name") or entry["id"]),
        resource_class=str(entry.get("class") or ""),
        cost_per_hour=float(entry.get("cost_per_hour") or 0.0),
        start=_parse_optional_instant(entry.get("start"), "start"),
        end=_parse_optional_instant(entry.get("end"), "end"),
        description=str(entry.get("description") or ""),
    )


def _allocation_from_dict(entry: Dict[str, object]) -> Allocation:
    if not entry.get("id"):
        raise ValueError("allocation id is required")
    common = dict(
        id=str(entry["id"]),
        resource_id=str(entry.get("resource_id") or ""),
        start=_parse_instant(entry["start"], "start"),
        allocation_pct=float(entry.get("allocation_pct", 100) or 0.0),
        label=str(entry.get("label") or ""),
        cost=float(entry.get("cost") or 0.0),
        baseline_start=_parse_optional_instant(entry.get("baseline_start"), "baseline_start"),
        baseline_end=_parse_optional_instant(entry.get("baseline_end"), "baseline_end"),
        baseline_cost=_optional_float(entry.get("baseline_cost")),
    )
    end = _parse_optional_instant(entry.get("end"), "end")
    if end is None:
        return Milestone(**common)
    if end < common["start"]:
        raise ValueError(f"allocation {common['id']} ends before it starts")
    return RangedAllocation(end=end, **common)


def plan_from_dict(data: Dict[str, object]) -> Plan:
    if not isinstance(data, dict):
        raise ValueError("plan document must be a JSON object")
    for key in ("resources", "allocations"):
        if not isinstance(data.get(key, []), list):
            raise ValueError(f"plan '{key}' must be an array")
    migrate_plan(data)
    sanitize_plan(data)
    meta = data.get("meta") or {}
    resources = tuple(_resource_from_dict(entry) for entry in data.get("resources") or [])
    ids = [resource.id for resource in resources]
    if len(ids) != len(set(ids)):
        raise ValueError("resource ids must be unique")
    allocations = tuple(_allocation_from_dict(entry) for entry in data["allocations"])
    allocation_ids = [allocation.id for allocation in allocations]
    if len(allocation_ids) != len(set(allocation_ids)):
        raise ValueError("allocation ids must be unique")
    return Plan(
        name=str(meta.get("planner_name") or meta.get("name") or "planner"),
        resources=resources,
        allocations=allocations,
        meta=tuple(sorted((str(k), str(v)) for k, v in meta.items())),
    )


def load_plan(path: str | Path) -> Plan:
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"plan file is not valid JSON: {path}") from exc
    return plan_from_dict(data)


def plan_to_dict(plan: Plan) -> Dict[str, object]:
    meta = dict(plan.meta)
    meta.setdefault("planner_name", plan.name)
    return {
        "meta": meta,
        "resources": [
            {
                "id": r.id,
                "name": r.name,
                "class": r.resource_class,
                "description": r.description,
                "cost_per_hour": r.cost_per_hour,
                "start": _format_instant(r.start),
                "end": _format_instant(r.end),
            }
            for r in plan.resources
        ],
        "allocations": [
            {
                "id": a.id,
                "resource_id": a.resource_id,
                "start": _format_instant(a.start),
                "end": _format_instant(a.end),
                "allocation_pct": a.allocation_pct,
                "label": a.label,
                "cost": a.cost,
                "baseline_start": _format_instant(a.baseline_start),
                "baseline_end": _format_instant(a.baseline_end),
                "baseline_cost": a.baseline_cost,
            }
            for a in plan.allocations
        ],
    }


def save_plan(plan: Plan, path: str | Path) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(plan_to_dict(plan), indent=2))


def _parse_holidays(raw: object) -> Tuple[date, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("holidays must be an array of ISO dates")
    holidays: List[date] = []
    for value in raw:
        try:
            holidays.append(dateparser.isoparse(str(value)).date())
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid date in 'holidays': {value}") from exc
    return tuple(holidays)


def config_from_dict(data: Dict[str, object]) -> AnalyticsConfig:
    hours = data.get("hours_by_weekday", list(DEFAULT_HOURS_BY_WEEKDAY))
    if not isinstance(hours, list) or len(hours) != 7:
        raise ValueError("hours_by_weekday must be an array of 7 numbers (Monday first)")
    if not all(isinstance(value, (int, float)) and value >= 0 for value in hours):
        raise ValueError("hours_by_weekday values must be non-negative numbers")
    threshold = data.get("overbooking_threshold_pct", 100)
    if not isinstance(threshold, (int, float)) or threshold <= 0:
        raise ValueError("overbooking_threshold_pct must be a positive number")
    period = data.get("cashflow_period", "month")
    if period not in CASHFLOW_PERIODS:
        raise ValueError(f"cashflow_period must be one of: {', '.join(CASHFLOW_PERIODS)}")
    cache_size = data.get("cache_size", 64)
    if not isinstance(cache_size, int) or cache_size < 0:
        raise ValueError("cache_size must be a non-negative integer")
    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")
    return AnalyticsConfig(
        hours_by_weekday=tuple(float(value) for value in hours),
        holidays=frozenset(_parse_holidays(data.get("holidays"))),
        overbooking_threshold_pct=float(threshold),
        cashflow_period=period,
        logging_level=logging_level,
        cache_size=cache_size,
    )


def load_config(path: str | Path) -> AnalyticsConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("config file must be a JSON object")
    return config_from_dict(data)


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
