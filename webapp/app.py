from __future__ import annotations

import os
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from dateutil import parser as dateparser
from flask import Flask, abort, jsonify, request

from plan_analytics.engine import AnalyticsEngine
from plan_analytics.io_utils import load_config, load_plan
from plan_analytics.models import AnalyticsConfig, Plan

PLAN_FILE = "plan.json"
CONFIG_FILE = "config.json"


def _default_plans_root() -> Path:
    return (Path(__file__).resolve().parent.parent / "plans").resolve()


def _resolve_plans_root() -> Path:
    env_value = os.getenv("PLANS_ROOT")
    if env_value:
        return Path(env_value).expanduser().resolve()
    return _default_plans_root()


def _validate_within_root(path: Path, root: Path) -> None:
    try:
        path.relative_to(root)
    except ValueError as exc:
        raise ValueError(f"Plan directory must be inside {root}") from exc


def _plan_paths(plan_dir: Path) -> Tuple[Path, Path]:
    input_dir = plan_dir / "input"
    return input_dir / PLAN_FILE, input_dir / CONFIG_FILE


def _list_plan_dirs(root: Path) -> List[Dict[str, object]]:
    entries: List[Dict[str, object]] = []
    if not root.exists():
        return entries
    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        plan_path, config_path = _plan_paths(child)
        entries.append(
            {
                "name": child.relative_to(root).as_posix(),
                "is_valid": plan_path.is_file(),
                "has_config": config_path.is_file(),
            }
        )
    return entries


def _json_value(value: object) -> object:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _records(df: pd.DataFrame) -> List[Dict[str, object]]:
    return [
        {key: _json_value(value) for key, value in row.items()}
        for row in df.to_dict(orient="records")
    ]


def _parse_now(raw: Optional[str]) -> datetime:
    if not raw:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        parsed = dateparser.isoparse(raw)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid date: {raw}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if len(raw) <= 10:
        parsed = datetime.combine(parsed.date(), time.min)
    return parsed


def create_app() -> Flask:
    app = Flask(__name__)
    plans_root = _resolve_plans_root()
    engines: Dict[str, Tuple[Optional[int], AnalyticsEngine]] = {}
    app.config["PLANS_ROOT"] = plans_root

    def _engine_for(name: str, config_path: Path) -> AnalyticsEngine:
        stamp = config_path.stat().st_mtime_ns if config_path.is_file() else None
        cached = engines.get(name)
        if cached is None or cached[0] != stamp:
            config = load_config(config_path) if stamp is not None else AnalyticsConfig()
            engines[name] = (stamp, AnalyticsEngine(config))
        return engines[name][1]

    def _load(name: str) -> Tuple[Plan, AnalyticsEngine]:
        plan_dir = (plans_root / name).resolve()
        try:
            _validate_within_root(plan_dir, plans_root)
        except ValueError:
            abort(404)
        plan_path, config_path = _plan_paths(plan_dir)
        if not plan_path.is_file():
            abort(404)
        return load_plan(plan_path), _engine_for(name, config_path)

    @app.errorhandler(ValueError)
    def bad_request(exc: ValueError):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": "plan not found"}), 404

    @app.get("/dirs")
    def directories():
        return jsonify({"plans": _list_plan_dirs(plans_root)})

    @app.get("/api/plans/<name>/kpis")
    def kpis(name: str):
        plan, engine = _load(name)
        now = _parse_now(request.args.get("now") or request.args.get("today"))
        summary = engine.kpi_summary(plan, now)
        schedule = summary.schedule
        return jsonify(
            {
                "plan": plan.name,
                "now": now.isoformat(),
                "utilization_all": summary.utilization_all,
                "utilization_future": summary.utilization_future,
                "idle_hours_all": summary.idle_hours_all,
                "idle_hours_future": summary.idle_hours_future,
                "over_capacity_all": summary.over_capacity_all,
                "over_capacity_future": summary.over_capacity_future,
                "over_capacity_ids": list(summary.over_capacity_ids),
                "delay_days": summary.delay_days,
                "budget_delta": summary.budget_delta,
                "cashflow_total": summary.cashflow_total,
                "milestones": summary.milestones,
                "schedule": {
                    "actual_start": _json_value(schedule.actual_start),
                    "actual_end": _json_value(schedule.actual_end),
                    "baseline_start": _json_value(schedule.baseline_start),
                    "baseline_end": _json_value(schedule.baseline_end),
                    "variance_days": schedule.variance_days,
                },
            }
        )

    @app.get("/api/plans/<name>/usage")
    def usage(name: str):
        plan, engine = _load(name)
        raw_from = request.args.get("from")
        from_day = _parse_now(raw_from).date() if raw_from else None
        return jsonify({"rows": _records(engine.daily_usage(plan, from_day))})

    @app.get("/api/plans/<name>/overbooking")
    def overbooking(name: str):
        plan, engine = _load(name)
        return jsonify({"bands": _records(engine.overbooking_bands(plan))})

    @app.get("/api/plans/<name>/utilization")
    def utilization(name: str):
        plan, engine = _load(name)
        today = _parse_now(request.args.get("today")).date()
        mode = request.args.get("mode", "all")
        return jsonify({"mode": mode, "rows": _records(engine.utilization(plan, today, mode))})

    @app.get("/api/plans/<name>/cashflow")
    def cashflow(name: str):
        plan, engine = _load(name)
        today = _parse_now(request.args.get("today")).date()
        period = request.args.get("period") or engine.config.cashflow_period
        return jsonify({"period": period, "buckets": _records(engine.cashflow(plan, today, period))})

    @app.get("/api/plans/<name>/budget")
    def budget(name: str):
        plan, engine = _load(name)
        now = _parse_now(request.args.get("now") or request.args.get("today"))
        return jsonify({"rows": _records(engine.budget(plan, now))})

    @app.get("/api/plans/<name>/resources/<resource_id>")
    def resource_overview(name: str, resource_id: str):
        plan, engine = _load(name)
        now = _parse_now(request.args.get("now") or request.args.get("today"))
        try:
            overview = engine.resource_overview(plan, resource_id, now)
        except KeyError:
            return jsonify({"error": f"resource '{resource_id}' not found"}), 404
        return jsonify(overview)

    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=int(os.getenv("PORT", "5000")), debug=False)
