from __future__ import annotations

import json
import shutil
from pathlib import Path

import pandas as pd
import pytest

from plan_analytics.main import main

SAMPLE_DIR = Path(__file__).resolve().parent.parent / "plans" / "sample"


@pytest.fixture
def project_dir(tmp_path) -> Path:
    target = tmp_path / "sample"
    shutil.copytree(SAMPLE_DIR, target)
    return target


def test_writes_kpi_tables(project_dir, capsys) -> None:
    main(["--project-dir", str(project_dir), "--today", "2024-01-15", "--period", "week"])
    output = project_dir / "output"
    for name in (
        "daily_usage.csv",
        "overbooking_bands.csv",
        "utilization_all.csv",
        "utilization_future.csv",
        "idle_gaps.csv",
        "budget.csv",
        "cashflow_week.csv",
        "kpi_summary.md",
    ):
        assert (output / name).is_file(), name
    bands = pd.read_csv(output / "overbooking_bands.csv")
    assert list(bands["resource_id"]) == ["r-ana"]
    assert "Wrote" in capsys.readouterr().out


def test_dry_run_prints_summary(project_dir, capsys) -> None:
    main(["--project-dir", str(project_dir), "--today", "2024-01-15", "--dry-run"])
    out = capsys.readouterr().out
    assert "Over-capacity resources (all): 1" in out
    assert "Milestones: 1" in out
    assert not (project_dir / "output").exists()


def test_explicit_plan_path(tmp_path, project_dir) -> None:
    outdir = tmp_path / "reports"
    main(["--plan", str(project_dir / "input" / "plan.json"), "--outdir", str(outdir), "--today", "2024-02-01"])
    budget = pd.read_csv(outdir / "budget.csv")
    assert budget["resource_id"].iloc[-1] == "TOTAL"


def test_missing_plan_exits_with_usage_error(tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--plan", str(tmp_path / "missing.json")])
    assert exc_info.value.code == 2
    assert "plan file not found" in capsys.readouterr().err


def test_no_inputs_is_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
