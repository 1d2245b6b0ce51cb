from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, time, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from dateutil import parser as dateparser

from .engine import AnalyticsEngine
from .io_utils import ensure_directory, load_config, load_plan, write_csv
from .models import CASHFLOW_PERIODS, AnalyticsConfig, KpiSummary, Plan


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resource plan analytics batch tool (JSON plan in, CSV KPI tables out)."
    )
    parser.add_argument(
        "--project-dir",
        help="Directory containing input/plan.json (and optional input/config.json)",
    )
    parser.add_argument("--plan", help="Path to plan JSON (overrides project-dir default)")
    parser.add_argument("--config", help="Path to configuration JSON file (optional)")
    parser.add_argument(
        "--outdir",
        default=None,
        help="Output directory for generated CSV files (default: <project-dir>/output or ./out)",
    )
    parser.add_argument(
        "--today",
        help="Reference instant for past/future splits (ISO date or timestamp, default: now UTC)",
    )
    parser.add_argument(
        "--period",
        choices=CASHFLOW_PERIODS,
        help="Cashflow bucket granularity (default: config cashflow_period)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print the KPI summary without writing output files",
    )
    return parser.parse_args(argv)


def _resolve_io_paths(args: argparse.Namespace) -> Tuple[Path, Optional[Path], Path]:
    project_dir = Path(args.project_dir).resolve() if args.project_dir else None
    if project_dir and not project_dir.exists():
        raise ValueError(f"project directory not found: {project_dir}")
    input_dir = project_dir / "input" if project_dir else None

    if args.plan:
        plan_path = Path(args.plan)
    elif input_dir:
        plan_path = input_dir / "plan.json"
    else:
        raise ValueError("missing required input path: --plan (or provide --project-dir)")
    if not plan_path.exists():
        raise ValueError(f"plan file not found at {plan_path}")

    config_path: Optional[Path] = None
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise ValueError(f"config file not found at {config_path}")
    elif input_dir and (input_dir / "config.json").exists():
        config_path = input_dir / "config.json"

    if args.outdir:
        outdir = Path(args.outdir)
    elif project_dir:
        outdir = project_dir / "output"
    else:
        outdir = Path("out")
    return plan_path, config_path, outdir


def _resolve_now(raw: Optional[str]) -> datetime:
    if not raw:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        parsed = dateparser.isoparse(raw)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid --today value: {raw}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if len(raw) <= 10:
        parsed = datetime.combine(parsed.date(), time.min)
    return parsed


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _summary_lines(plan: Plan, summary: KpiSummary, now: datetime) -> List[str]:
    schedule = summary.schedule
    return [
        f"# KPI Summary – {plan.name}",
        "",
        f"- Reference time: {now.isoformat(timespec='minutes')}",
        f"- Average utilisation (all): {summary.utilization_all:.1f}%",
        f"- Average utilisation (future): {summary.utilization_future:.1f}%",
        f"- Idle hours (all): {summary.idle_hours_all:.1f}",
        f"- Idle hours (future): {summary.idle_hours_future:.1f}",
        f"- Over-capacity resources (all): {summary.over_capacity_all}",
        f"- Over-capacity resources (future): {summary.over_capacity_future}",
        f"- Delay: {summary.delay_days:.1f} days",
        f"- Schedule variance: {schedule.variance_days:.1f} days",
        f"- Budget delta: {summary.budget_delta:.2f}",
        f"- Cashflow total (current): {summary.cashflow_total:.2f}",
        f"- Milestones: {summary.milestones}",
    ]


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        plan_path, config_path, outdir = _resolve_io_paths(args)
        now = _resolve_now(args.today)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    cfg = load_config(config_path) if config_path else AnalyticsConfig()
    _configure_logging(cfg.logging_level)
    plan = load_plan(plan_path)
    engine = AnalyticsEngine(cfg)
    today = now.date()
    period = args.period or cfg.cashflow_period

    summary = engine.kpi_summary(plan, now)
    lines = _summary_lines(plan, summary, now)
    if args.dry_run:
        print("\n".join(lines))
        return

    outdir_path = ensure_directory(outdir)
    tables = {
        "daily_usage.csv": engine.daily_usage(plan),
        "overbooking_bands.csv": engine.overbooking_bands(plan),
        "utilization_all.csv": engine.utilization(plan, today, "all"),
        "utilization_future.csv": engine.utilization(plan, today, "future"),
        "idle_gaps.csv": engine.idle_gaps(plan),
        "budget.csv": engine.budget(plan, now),
        f"cashflow_{period}.csv": engine.cashflow(plan, today, period),
    }
    for filename, table in tables.items():
        path = outdir_path / filename
        write_csv(table, path)
        print(f"Wrote {path}")
    summary_path = outdir_path / "kpi_summary.md"
    summary_path.write_text("\n".join(lines) + "\n")
    print(f"Wrote {summary_path}")


if __name__ == "__main__":
    main()
