from __future__ import annotations

import pytest

from factories import at, make_plan, milestone, ranged, resource


@pytest.fixture
def overlap_plan():
    """Resource R1 booked 70% for three days with a 40% job on the middle day."""
    return make_plan(
        [resource("r1", "Ana")],
        [
            ranged("a1", at(1, 9), at(3, 17), 70),
            ranged("a2", at(2, 9), at(2, 17), 40),
        ],
    )


@pytest.fixture
def hire_window_plan():
    """Explicit Monday-Friday hire window, allocation running Monday-Sunday."""
    return make_plan(
        [resource("r1", "Ana", start=at(1), end=at(5))],
        [ranged("a1", at(1), at(7, 23), 100)],
    )


@pytest.fixture
def milestone_plan():
    return make_plan(
        [resource("r1", "Ana")],
        [
            ranged("a1", at(1, 9), at(5, 17), 100),
            milestone("m1", at(3, 12), 80, cost=500.0),
        ],
    )
