from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from cropcal.errors import InvalidObservation, InvalidPlantingDate
from cropcal.models.enums import CalendarStatusEnum, EventStatusEnum
from cropcal.services.pipeline import complete_state, generate_state, recalculate_state, refresh_state

LOCATION_HASH = "a" * 64
PLANTED = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


def _generate(profile, snapshot=None, as_of=PLANTED, planting=date(2024, 1, 1)):
	return generate_state(profile, planting, 1.0, LOCATION_HASH, snapshot, as_of)


def test_generate_on_planting_day(profile) -> None:
	state = _generate(profile)

	assert state.calendar_status == CalendarStatusEnum.active
	assert state.current_growth_stage == "vegetative"
	assert state.progress_percentage == 0.0
	assert state.expected_harvest_date == date(2024, 4, 30)
	assert state.generation_conditions.captured_at == PLANTED
	assert state.cost_estimation.event_count == 4
	assert state.yield_estimate.amount == 3.5
	assert state.harvest_window.optimal_date == date(2024, 4, 30)


def test_future_planting_is_planned(profile) -> None:
	state = _generate(profile, planting=date(2024, 1, 20))

	assert state.calendar_status == CalendarStatusEnum.planned
	assert state.current_growth_stage is None


def test_old_planting_date_is_rejected(profile) -> None:
	with pytest.raises(InvalidPlantingDate):
		_generate(profile, as_of=datetime(2024, 2, 1, tzinfo=UTC))


def test_generation_is_deterministic(profile, snapshot_factory) -> None:
	snapshot = snapshot_factory(observed_at=PLANTED, forecast={date(2024, 1, 3): 15.0})

	assert _generate(profile, snapshot).model_dump_json() == _generate(profile, snapshot).model_dump_json()


def test_observed_two_stages_ahead_reanchors_and_replaces_conditions(profile, snapshot_factory) -> None:
	state = _generate(profile)
	state = state.model_copy(
		update={
			"fertilization_schedule": [
				event.model_copy(update={"status": EventStatusEnum.completed})
				if event.event_id == "fertilization-2024-01-01" else event
				for event in state.fertilization_schedule
			]
		}
	)
	as_of = datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
	snapshot = snapshot_factory(observed_at=as_of, temperature_c=18.0)

	updated = recalculate_state(profile, state, 1.0, LOCATION_HASH, snapshot, as_of, observed_stage="maturity")

	assert [(w.stage, w.start_date, w.end_date) for w in updated.growth_timeline] == [
		("vegetative", date(2024, 1, 1), date(2024, 1, 5)),
		("flowering", date(2024, 1, 6), date(2024, 1, 10)),
		("maturity", date(2024, 1, 11), date(2024, 2, 19)),
	]
	assert updated.expected_harvest_date == date(2024, 2, 20)
	assert updated.harvest_window.earliest_date == date(2024, 2, 13)
	assert updated.harvest_window.latest_date == date(2024, 2, 27)
	assert updated.yield_estimate.adjustments == ["soil_moisture_within_tolerance"]
	assert updated.current_growth_stage == "maturity"
	assert updated.generation_conditions.captured_at == as_of
	assert updated.generation_conditions.temperature_c == 18.0
	assert updated.fertilization_schedule[0].event_id == "fertilization-2024-01-01"
	assert updated.fertilization_schedule[0].status == EventStatusEnum.completed
	assert updated.progress_percentage == 20.0


def test_recalculation_is_idempotent(profile, snapshot_factory) -> None:
	as_of = datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
	snapshot = snapshot_factory(observed_at=as_of, forecast={date(2024, 1, 12): 30.0})
	once = recalculate_state(profile, _generate(profile), 1.0, LOCATION_HASH, snapshot, as_of, observed_stage="maturity")
	twice = recalculate_state(profile, once, 1.0, LOCATION_HASH, snapshot, as_of, observed_stage="maturity")

	assert twice.model_dump_json() == once.model_dump_json()


def test_progress_never_moves_backwards(profile) -> None:
	as_of = datetime(2024, 2, 15, 9, 0, tzinfo=UTC)
	refreshed = refresh_state(profile, _generate(profile), 1.0, None, as_of)
	assert refreshed.progress_percentage == 37.5

	behind = recalculate_state(profile, refreshed, 1.0, LOCATION_HASH, None, as_of, observed_stage="vegetative")

	assert behind.expected_harvest_date == date(2024, 5, 6)
	assert behind.current_growth_stage == "vegetative"
	assert behind.progress_percentage == 37.5


def test_unknown_observed_stage_is_rejected(profile) -> None:
	with pytest.raises(InvalidObservation):
		recalculate_state(
			profile, _generate(profile), 1.0, LOCATION_HASH, None,
			datetime(2024, 1, 11, tzinfo=UTC), observed_stage="tasseling",
		)


def test_refresh_keeps_schedule_and_conditions(profile, snapshot_factory) -> None:
	state = _generate(profile)
	as_of = datetime(2024, 1, 20, tzinfo=UTC)

	refreshed = refresh_state(profile, state, 1.0, snapshot_factory(observed_at=as_of, temperature_c=40.0), as_of)

	assert refreshed.generation_conditions == state.generation_conditions
	assert refreshed.irrigation_schedule == state.irrigation_schedule
	assert refreshed.risk_assessment.assessed_on == date(2024, 1, 20)
	assert refreshed.risk_assessment.score < 100.0


def test_complete_state_freezes_progress(profile) -> None:
	completed = complete_state(_generate(profile))

	assert completed.calendar_status == CalendarStatusEnum.completed
	assert completed.progress_percentage == 100.0
