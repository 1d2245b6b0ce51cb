from __future__ import annotations

from datetime import date

import pytest

from factories import at, make_plan, milestone, ranged, resource
from plan_analytics.cashflow import build_cashflow, cashflow_totals, period_key


@pytest.fixture
def two_month_plan():
    return make_plan(
        [resource("r1"), resource("r2")],
        [
            ranged("a1", at(15, 9), at(26, 17), cost=1000.0, baseline_cost=900.0),
            ranged("a2", at(29, 9), at(9, 17, month=2), cost=500.0, resource_id="r2"),
        ],
    )


def test_period_keys() -> None:
    day = date(2024, 1, 3)
    assert period_key(day, "day") == "2024-01-03"
    assert period_key(day, "week") == "2024-W01"
    assert period_key(day, "month") == "2024-01"
    assert period_key(date(2024, 12, 30), "week") == "2025-W01"


def test_month_buckets_snap_to_calendar_months(two_month_plan) -> None:
    buckets = build_cashflow(two_month_plan, "month", date(2024, 1, 1))
    assert list(buckets["period"]) == ["2024-01", "2024-02"]
    assert list(buckets["start"]) == [date(2024, 1, 1), date(2024, 2, 1)]
    assert list(buckets["end"]) == [date(2024, 1, 31), date(2024, 2, 29)]


def test_week_buckets_run_monday_to_sunday(two_month_plan) -> None:
    buckets = build_cashflow(two_month_plan, "week", date(2024, 1, 1))
    first = buckets.iloc[0]
    assert first["period"] == "2024-W03"
    assert first["start"] == date(2024, 1, 15)
    assert first["end"] == date(2024, 1, 21)


@pytest.mark.parametrize("period", ["day", "week", "month"])
def test_grand_total_is_independent_of_granularity(two_month_plan, period: str) -> None:
    totals = cashflow_totals(build_cashflow(two_month_plan, period, date(2024, 1, 20)))
    assert totals["current"] == pytest.approx(1500.0)
    assert totals["baseline"] == pytest.approx(900.0)


def test_cost_is_weighted_by_working_hours() -> None:
    plan = make_plan([resource("r1")], [ranged("a1", at(1), at(7, 23), cost=440.0)])
    buckets = build_cashflow(plan, "day", date(2024, 1, 1)).set_index("period")
    assert buckets.loc["2024-01-01", "current"] == pytest.approx(80.0)
    assert buckets.loc["2024-01-06", "current"] == pytest.approx(40.0)
    assert buckets.loc["2024-01-07", "current"] == 0.0


def test_status_tags_relative_to_today() -> None:
    plan = make_plan([resource("r1")], [ranged("a1", at(1), at(5, 17), cost=100.0)])
    buckets = build_cashflow(plan, "day", date(2024, 1, 3)).set_index("period")
    assert buckets.loc["2024-01-02", "status"] == "past"
    assert buckets.loc["2024-01-03", "status"] == "mixed"
    assert buckets.loc["2024-01-04", "status"] == "future"
    weekly = build_cashflow(plan, "week", date(2024, 1, 3))
    assert list(weekly["status"]) == ["mixed"]


def test_baseline_and_current_tracked_separately() -> None:
    plan = make_plan(
        [resource("r1")],
        [
            ranged(
                "a1",
                at(1, 9),
                at(2, 17),
                cost=200.0,
                baseline_start=at(2, 9),
                baseline_end=at(2, 17),
                baseline_cost=100.0,
            )
        ],
    )
    buckets = build_cashflow(plan, "day", date(2024, 1, 1)).set_index("period")
    assert buckets.loc["2024-01-01", "current"] == pytest.approx(100.0)
    assert buckets.loc["2024-01-01", "baseline"] == 0.0
    assert buckets.loc["2024-01-02", "baseline"] == pytest.approx(100.0)


def test_costs_outside_hire_window_are_not_credited() -> None:
    plan = make_plan(
        [resource("r1", start=at(1), end=at(2))],
        [ranged("a1", at(1, 9), at(5, 17), cost=400.0)],
    )
    buckets = build_cashflow(plan, "day", date(2024, 1, 1)).set_index("period")
    assert buckets.loc["2024-01-01", "current"] == pytest.approx(200.0)
    assert buckets.loc["2024-01-02", "current"] == pytest.approx(200.0)
    assert buckets.loc["2024-01-03", "current"] == 0.0


def test_milestone_on_working_day_is_credited() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(1, 9), at(7, 17)), milestone("m1", at(3, 12), cost=250.0)],
    )
    buckets = build_cashflow(plan, "day", date(2024, 1, 1)).set_index("period")
    assert buckets.loc["2024-01-03", "current"] == pytest.approx(250.0)


def test_milestone_on_zero_capacity_day_is_undistributable() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(1, 9), at(7, 17)), milestone("m1", at(7, 12), cost=250.0)],
    )
    totals = cashflow_totals(build_cashflow(plan, "month", date(2024, 1, 1)))
    assert totals["current"] == 0.0


def test_empty_plan_has_no_buckets() -> None:
    buckets = build_cashflow(make_plan([resource("r1")], []), "month", date(2024, 1, 1))
    assert buckets.empty
    assert cashflow_totals(buckets) == {"baseline": 0.0, "current": 0.0}


def test_unknown_period_rejected(two_month_plan) -> None:
    with pytest.raises(ValueError):
        build_cashflow(two_month_plan, "quarter", date(2024, 1, 1))
