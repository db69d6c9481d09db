from __future__ import annotations

from datetime import date, timedelta

import pytest

from cropcal.errors import InvalidPlantingDate, InvalidProfile
from cropcal.services.timeline_builder import (
	build_growth_timeline,
	expected_stage_index,
	reanchor_timeline,
	stage_durations,
	validate_profile,
)


def test_three_equal_stages_from_new_year(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))

	assert [(w.stage, w.start_date, w.end_date) for w in timeline.windows] == [
		("vegetative", date(2024, 1, 1), date(2024, 2, 9)),
		("flowering", date(2024, 2, 10), date(2024, 3, 20)),
		("maturity", date(2024, 3, 21), date(2024, 4, 29)),
	]
	assert timeline.expected_harvest_date == date(2024, 4, 30)


@pytest.mark.parametrize("period", [7, 90, 101, 120, 133])
def test_windows_are_contiguous_and_cover_the_period(profile_factory, period: int) -> None:
	profile = profile_factory(
		growing_period_days=period,
		growth_stages=[
			{"name": "a", "relative_duration_fraction": 0.3},
			{"name": "b", "relative_duration_fraction": 0.3},
			{"name": "c", "relative_duration_fraction": 0.4},
		],
		fertilization_schedule=[],
		irrigation_schedule=[],
		pest_management_schedule=[],
	)
	planting = date(2024, 3, 1)
	timeline = build_growth_timeline(profile, planting)

	assert timeline.windows[0].start_date == planting
	for previous, current in zip(timeline.windows, timeline.windows[1:]):
		assert current.start_date == previous.end_date + timedelta(days=1)
	assert sum(w.duration_days for w in timeline.windows) == period
	assert timeline.windows[-1].end_date == planting + timedelta(days=period - 1)
	assert timeline.expected_harvest_date == planting + timedelta(days=period)


def test_final_stage_absorbs_rounding_remainder(profile_factory) -> None:
	profile = profile_factory(
		growing_period_days=101,
		growth_stages=[
			{"name": "a", "relative_duration_fraction": 0.3},
			{"name": "b", "relative_duration_fraction": 0.3},
			{"name": "c", "relative_duration_fraction": 0.4},
		],
		fertilization_schedule=[],
		irrigation_schedule=[],
		pest_management_schedule=[],
	)
	assert stage_durations(profile) == [30, 30, 41]


def test_fractions_must_sum_to_one(profile_factory) -> None:
	profile = profile_factory(
		growth_stages=[
			{"name": "a", "relative_duration_fraction": 0.5},
			{"name": "b", "relative_duration_fraction": 0.4},
		],
		fertilization_schedule=[],
		irrigation_schedule=[],
		pest_management_schedule=[],
	)
	with pytest.raises(InvalidProfile):
		validate_profile(profile)


def test_template_referencing_unknown_stage_is_rejected(profile_factory) -> None:
	profile = profile_factory(
		pest_management_schedule=[{"stage": "tasseling", "action": "Spray", "quantity": 1.0}],
	)
	with pytest.raises(InvalidProfile, match="unknown stage"):
		validate_profile(profile)


def test_template_must_be_addressed_exactly_one_way(profile_factory) -> None:
	both = profile_factory(irrigation_schedule=[{"stage": "flowering", "day_offset": 3, "action": "Water"}])
	neither = profile_factory(irrigation_schedule=[{"action": "Water"}])
	for broken in (both, neither):
		with pytest.raises(InvalidProfile, match="exactly one"):
			validate_profile(broken)


def test_duplicate_stage_names_are_rejected(profile_factory) -> None:
	profile = profile_factory(
		growth_stages=[
			{"name": "a", "relative_duration_fraction": 0.5},
			{"name": "a", "relative_duration_fraction": 0.5},
		],
		fertilization_schedule=[],
		irrigation_schedule=[],
		pest_management_schedule=[],
	)
	with pytest.raises(InvalidProfile):
		validate_profile(profile)


def test_planting_date_grace_window(profile) -> None:
	planting = date(2024, 1, 1)
	build_growth_timeline(profile, planting, as_of=planting + timedelta(days=7))
	with pytest.raises(InvalidPlantingDate):
		build_growth_timeline(profile, planting, as_of=planting + timedelta(days=8))


def test_expected_stage_index_edges(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))

	assert expected_stage_index(timeline.windows, date(2023, 12, 31)) is None
	assert expected_stage_index(timeline.windows, date(2024, 1, 1)) == 0
	assert expected_stage_index(timeline.windows, date(2024, 2, 10)) == 1
	assert expected_stage_index(timeline.windows, date(2024, 6, 1)) == 2


def test_reanchor_two_stages_ahead_compresses_skipped_stages(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	as_of = date(2024, 1, 11)

	reanchored = reanchor_timeline(profile, timeline, as_of, current_index=2)

	assert [(w.stage, w.start_date, w.end_date) for w in reanchored.windows] == [
		("vegetative", date(2024, 1, 1), date(2024, 1, 5)),
		("flowering", date(2024, 1, 6), date(2024, 1, 10)),
		("maturity", date(2024, 1, 11), date(2024, 2, 19)),
	]
	assert reanchored.expected_harvest_date == date(2024, 2, 20)


def test_reanchor_keeps_elapsed_windows(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	as_of = date(2024, 2, 15)

	reanchored = reanchor_timeline(profile, timeline, as_of, current_index=2)

	assert reanchored.windows[0] == timeline.windows[0]
	assert reanchored.windows[1].start_date == date(2024, 2, 10)
	assert reanchored.windows[1].end_date == date(2024, 2, 14)
	assert reanchored.windows[2].start_date == as_of


def test_reanchor_behind_schedule_extends_current_stage(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	as_of = date(2024, 2, 15)

	reanchored = reanchor_timeline(profile, timeline, as_of, current_index=0, extend_current=True)

	assert [(w.stage, w.start_date, w.end_date) for w in reanchored.windows] == [
		("vegetative", date(2024, 1, 1), date(2024, 2, 15)),
		("flowering", date(2024, 2, 16), date(2024, 3, 26)),
		("maturity", date(2024, 3, 27), date(2024, 5, 5)),
	]
	assert reanchored.expected_harvest_date == date(2024, 5, 6)


def test_reanchor_is_stable_when_repeated(profile) -> None:
	timeline = build_growth_timeline(profile, date(2024, 1, 1))
	as_of = date(2024, 2, 15)

	once = reanchor_timeline(profile, timeline, as_of, current_index=0, extend_current=True)
	twice = reanchor_timeline(profile, once, as_of, current_index=0, extend_current=True)

	assert twice == once
