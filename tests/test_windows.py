from __future__ import annotations

from datetime import date, datetime, time

from factories import at, make_plan, milestone, ranged, resource
from plan_analytics.calendar import WorkingCalendar
from plan_analytics.windows import allocation_span, clamp, hire_window, plan_horizon, usable_allocations

TODAY = date(2024, 1, 1)


def test_horizon_spans_allocations_and_milestones() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(1, 9), at(3, 17)), milestone("m1", at(10, 12))],
    )
    horizon = plan_horizon(plan, TODAY)
    assert horizon.start == at(1, 9)
    assert horizon.end == at(10, 12)
    assert not horizon.is_empty


def test_empty_plan_horizon_is_single_day_at_today() -> None:
    horizon = plan_horizon(make_plan([resource("r1")], []), today=date(2024, 3, 4))
    assert horizon.is_empty
    assert horizon.start == datetime(2024, 3, 4)
    assert horizon.end == datetime.combine(date(2024, 3, 4), time.max)


def test_dangling_allocations_are_unusable() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(2), at(3)), ranged("ghost", at(1), at(20), resource_id="nobody")],
    )
    assert [a.id for a in usable_allocations(plan)] == ["a1"]
    assert plan_horizon(plan, TODAY).start == at(2)


def test_explicit_hire_window_is_normalized_to_whole_days() -> None:
    r1 = resource("r1", start=at(2, 10), end=at(5, 8))
    plan = make_plan([r1], [ranged("a1", at(1), at(9))])
    window = hire_window(plan, r1, plan_horizon(plan, TODAY))
    assert window.start == at(2)
    assert window.end == datetime.combine(date(2024, 1, 5), time.max)


def test_hire_window_derived_from_allocations() -> None:
    r1, r2 = resource("r1"), resource("r2")
    plan = make_plan(
        [r1, r2],
        [
            ranged("a1", at(3, 9), at(4, 17)),
            milestone("m1", at(8, 12)),
            ranged("a2", at(1, 9), at(12, 17), resource_id="r2"),
        ],
    )
    window = hire_window(plan, r1, plan_horizon(plan, TODAY))
    assert window.start == at(3)
    assert window.end.date() == date(2024, 1, 8)


def test_hire_window_falls_back_to_plan_horizon() -> None:
    idle = resource("idle")
    plan = make_plan([resource("r1"), idle], [ranged("a1", at(1, 9), at(12, 17))])
    window = hire_window(plan, idle, plan_horizon(plan, TODAY))
    assert window.start == at(1)
    assert window.end.date() == date(2024, 1, 12)


def test_missing_explicit_end_uses_allocations() -> None:
    r1 = resource("r1", start=at(2))
    plan = make_plan([r1], [ranged("a1", at(3, 9), at(4, 17))])
    assert hire_window(plan, r1, plan_horizon(plan, TODAY)).end.date() == date(2024, 1, 4)


def test_one_day_allocation_counts_one_day_of_capacity() -> None:
    r1 = resource("r1")
    plan = make_plan([r1], [ranged("a1", at(2, 9), at(2, 17))])
    window = hire_window(plan, r1, plan_horizon(plan, TODAY))
    assert WorkingCalendar().total_hours(window.start, window.end) == 8.0


def test_clamp_intersection() -> None:
    assert clamp(at(1), at(10), at(3), at(5)) == (at(3), at(5))
    assert clamp(at(4), at(10), at(3), at(5)) == (at(4), at(5))


def test_clamp_disjoint_returns_none() -> None:
    assert clamp(at(1), at(2), at(3), at(5)) is None


def test_clamp_touching_intervals_share_one_instant() -> None:
    assert clamp(at(1), at(3), at(3), at(5)) == (at(3), at(3))


def test_allocation_span_is_none_without_usable_allocations() -> None:
    plan = make_plan([resource("r1")], [ranged("ghost", at(1), at(2), resource_id="nobody")])
    assert allocation_span(plan) is None
    assert plan_horizon(plan, date(2024, 3, 4)).start == datetime(2024, 3, 4)


def test_horizon_ignores_today_when_plan_has_allocations() -> None:
    plan = make_plan([resource("r1")], [ranged("a1", at(2, 9), at(3, 17))])
    assert plan_horizon(plan, date(2030, 6, 1)) == allocation_span(plan)
