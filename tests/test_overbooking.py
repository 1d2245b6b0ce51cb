from __future__ import annotations

from factories import at, make_plan, milestone, ranged, resource
from plan_analytics.models import OverbookingBand
from plan_analytics.overbooking import build_overbooking_bands, find_overbooking_bands, has_clash


def test_band_covers_overlap(overlap_plan) -> None:
    assert find_overbooking_bands(overlap_plan) == [OverbookingBand("r1", at(2, 9), at(2, 17))]


def test_band_table(overlap_plan) -> None:
    bands = build_overbooking_bands(overlap_plan)
    assert list(bands.columns) == ["resource_id", "resource_name", "start", "end"]
    row = bands.iloc[0]
    assert row["resource_name"] == "Ana"
    assert row["start"] == at(2, 9)
    assert row["end"] == at(2, 17)


def test_hand_over_at_same_instant_is_not_overbooked() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(1, 9), at(2, 12), 70), ranged("a2", at(2, 12), at(3, 17), 40)],
    )
    assert find_overbooking_bands(plan) == []


def test_milestones_do_not_affect_load() -> None:
    plan = make_plan(
        [resource("r1")],
        [ranged("a1", at(1, 9), at(3, 17), 100), milestone("m1", at(2, 9), 50)],
    )
    assert find_overbooking_bands(plan) == []


def test_stacked_allocations_yield_one_band() -> None:
    plan = make_plan(
        [resource("r1")],
        [
            ranged("a1", at(1), at(10), 60),
            ranged("a2", at(2), at(5), 60),
            ranged("a3", at(4), at(8), 60),
        ],
    )
    assert find_overbooking_bands(plan) == [OverbookingBand("r1", at(2), at(8))]


def test_bands_are_per_resource() -> None:
    plan = make_plan(
        [resource("r1"), resource("r2")],
        [
            ranged("a1", at(1), at(4), 80),
            ranged("a2", at(2), at(3), 80),
            ranged("b1", at(1), at(4), 80, resource_id="r2"),
        ],
    )
    assert find_overbooking_bands(plan) == [OverbookingBand("r1", at(2), at(3))]


def test_custom_threshold(overlap_plan) -> None:
    assert find_overbooking_bands(overlap_plan, threshold_pct=110.0) == []


def test_has_clash() -> None:
    plan = make_plan([resource("r1")], [ranged("a1", at(2), at(4)), milestone("m1", at(10))])
    assert has_clash(plan, "r1", at(3), at(5))
    assert not has_clash(plan, "r1", at(4), at(6))
    assert not has_clash(plan, "r1", at(3), at(5), ignore_id="a1")
    assert not has_clash(plan, "r1", at(9), at(11))
    assert not has_clash(plan, "r2", at(3), at(5))
