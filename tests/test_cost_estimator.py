from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from cropcal.services.cost_estimator import estimate_cost
from cropcal.services.schedule_synthesizer import synthesize_schedules
from cropcal.services.timeline_builder import build_growth_timeline

AS_OF = datetime(2024, 2, 5, 12, 0, tzinfo=UTC)


def test_totals_per_hectare(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	cost = estimate_cost(synthesize_schedules(profile, timeline, 1.0, None, AS_OF), "INR")

	assert cost.currency == "INR"
	assert cost.min == pytest.approx(1700.0)
	assert cost.max == pytest.approx(50 * 30 + 25 * 8 + 50 * 6 + 0.5 * 900)
	assert cost.breakdown["irrigation"].min == pytest.approx(200.0)
	assert cost.event_count == 4


def test_cost_is_linear_in_planned_area(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	one = estimate_cost(synthesize_schedules(profile, timeline, 1.0, None, AS_OF), "INR")
	three = estimate_cost(synthesize_schedules(profile, timeline, 3.0, None, AS_OF), "INR")

	assert three.min == pytest.approx(3 * one.min)
	assert three.max == pytest.approx(3 * one.max)


def test_skipped_irrigation_costs_nothing(profile, snapshot_factory) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	snapshot = snapshot_factory(
		observed_at=datetime(2024, 2, 5, 6, 0, tzinfo=UTC),
		forecast={date(2024, 2, 10): 25.0},
	)
	cost = estimate_cost(synthesize_schedules(profile, timeline, 1.0, snapshot, AS_OF), "INR")

	assert cost.breakdown["irrigation"].min == 0.0
	assert cost.breakdown["irrigation"].max == 0.0
	assert cost.min == pytest.approx(1500.0)
	assert cost.event_count == 3
