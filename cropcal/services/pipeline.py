"""Pure calendar pipeline: timeline → schedules → risk, cost + yield outlook → recommendations.

Every function here takes its inputs explicitly (including ``as_of``) and
returns a complete ``CalendarState``; nothing touches the database, Redis or
the clock, so the same inputs always produce the same state.
"""

from __future__ import annotations

from datetime import date, datetime

from cropcal.errors import InvalidObservation
from cropcal.models.enums import CalendarStatusEnum
from cropcal.schemas.calendar import CalendarState, GenerationConditions, GrowthTimeline, Schedules
from cropcal.schemas.crop import CropProfileData
from cropcal.schemas.environment import EnvironmentalSnapshot
from cropcal.services.cost_estimator import estimate_cost
from cropcal.services.policy import EnginePolicy
from cropcal.services.progress_tracker import (
	compute_progress,
	current_stage,
	lifecycle_status,
	summarize_conditions,
)
from cropcal.services.recommendation_service import build_recommendations
from cropcal.services.risk_engine import assess_risk
from cropcal.services.schedule_synthesizer import merge_with_history, synthesize_schedules
from cropcal.services.timeline_builder import (
	build_growth_timeline,
	expected_stage_index,
	reanchor_timeline,
	validate_profile,
)
from cropcal.services.yield_estimator import estimate_yield, harvest_window


def _assemble(
	profile: CropProfileData,
	timeline: GrowthTimeline,
	schedules: Schedules,
	planned_area: float,
	snapshot: EnvironmentalSnapshot | None,
	conditions: GenerationConditions,
	as_of: datetime,
	policy: EnginePolicy,
	*,
	progress_floor: float = 0.0,
) -> CalendarState:
	day = as_of.date()
	risk = assess_risk(profile, timeline, schedules, snapshot, as_of, policy)
	return CalendarState(
		planting_date=timeline.start_date,
		expected_harvest_date=timeline.expected_harvest_date,
		calendar_status=lifecycle_status(timeline, day),
		current_growth_stage=current_stage(timeline, day),
		progress_percentage=max(progress_floor, compute_progress(timeline, day)),
		growth_timeline=timeline.windows,
		fertilization_schedule=schedules.fertilization,
		irrigation_schedule=schedules.irrigation,
		pest_management_schedule=schedules.pest_management,
		activity_calendar=schedules.activity_calendar,
		ai_recommendations=build_recommendations(timeline, schedules, risk, as_of, policy),
		risk_assessment=risk,
		cost_estimation=estimate_cost(schedules, policy.currency),
		generation_conditions=conditions,
		yield_estimate=estimate_yield(profile, planned_area, snapshot, as_of),
		harvest_window=harvest_window(timeline, policy),
	)


def generate_state(
	profile: CropProfileData,
	planting_date: date,
	planned_area: float,
	location_hash: str,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> CalendarState:
	"""Initial generation for a planting decision."""
	policy = policy or EnginePolicy()
	timeline = build_growth_timeline(profile, planting_date, as_of=as_of.date(), policy=policy)
	schedules = synthesize_schedules(profile, timeline, planned_area, snapshot, as_of, policy)
	conditions = summarize_conditions(snapshot, location_hash, as_of, policy)
	return _assemble(profile, timeline, schedules, planned_area, snapshot, conditions, as_of, policy)


def recalculate_state(
	profile: CropProfileData,
	state: CalendarState,
	planned_area: float,
	location_hash: str,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
	*,
	observed_stage: str | None = None,
) -> CalendarState:
	"""Full recalculation of an existing calendar.

	With ``observed_stage`` the timeline is re-anchored so that stage is in
	progress on ``as_of``; otherwise the persisted timeline stands.  Events
	dated before ``as_of`` are carried over from ``state`` and everything
	from ``as_of`` on is synthesized again.  ``generation_conditions`` is
	replaced by the new snapshot summary.
	"""
	policy = policy or EnginePolicy()
	validate_profile(profile, policy)
	day = as_of.date()
	previous = state.timeline()

	if observed_stage is not None:
		names = profile.stage_names()
		if observed_stage not in names:
			raise InvalidObservation(f"unknown growth stage {observed_stage!r} for {profile.crop_type}")
		observed_index = names.index(observed_stage)
		expected_index = expected_stage_index(previous.windows, day)
		behind = expected_index is not None and observed_index < expected_index
		timeline = reanchor_timeline(profile, previous, day, observed_index, extend_current=behind)
	elif [window.stage for window in previous.windows] != profile.stage_names():
		timeline = build_growth_timeline(profile, previous.start_date, policy=policy)
	else:
		timeline = previous

	fresh = synthesize_schedules(profile, timeline, planned_area, snapshot, as_of, policy)
	schedules = merge_with_history(state.schedules(), fresh, day)
	conditions = summarize_conditions(snapshot, location_hash, as_of, policy)
	return _assemble(
		profile,
		timeline,
		schedules,
		planned_area,
		snapshot,
		conditions,
		as_of,
		policy,
		progress_floor=state.progress_percentage,
	)


def refresh_state(
	profile: CropProfileData,
	state: CalendarState,
	planned_area: float,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> CalendarState:
	"""No-drift tick: keep timeline, schedules and generation conditions, refresh the rest."""
	policy = policy or EnginePolicy()
	return _assemble(
		profile,
		state.timeline(),
		state.schedules(),
		planned_area,
		snapshot,
		state.generation_conditions,
		as_of,
		policy,
		progress_floor=state.progress_percentage,
	)


def complete_state(state: CalendarState) -> CalendarState:
	"""Harvest confirmed: the timeline freezes and progress reaches 100."""
	return state.model_copy(
		update={"calendar_status": CalendarStatusEnum.completed, "progress_percentage": 100.0}
	)
