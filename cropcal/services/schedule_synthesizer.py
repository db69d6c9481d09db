"""Schedule synthesizer — projects template schedules onto a stage timeline.

Output is a pure function of (profile templates, timeline, planned area,
snapshot, as_of, policy): the same inputs always produce byte-identical
schedules, which is what makes recalculation idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any

from cropcal.errors import InvalidProfile
from cropcal.models.enums import ActivityCategoryEnum, EventStatusEnum
from cropcal.schemas.calendar import (
	EVENT_TYPES,
	ActivityEvent,
	GrowthTimeline,
	ScheduledAction,
	Schedules,
)
from cropcal.schemas.crop import CropProfileData, TemplateEntry
from cropcal.schemas.environment import EnvironmentalSnapshot, SatelliteSnapshot, WeatherSnapshot
from cropcal.services.policy import EnginePolicy
from cropcal.services.timeline_builder import expected_stage_index

SKIP_REASON_PRECIPITATION = "forecast_precipitation_exceeds_threshold"

CATEGORY_ORDER: dict[str, int] = {
	ActivityCategoryEnum.fertilization.value: 0,
	ActivityCategoryEnum.irrigation.value: 1,
	ActivityCategoryEnum.pest_management.value: 2,
	ActivityCategoryEnum.activity.value: 3,
}


def _event_sort_key(event: Any) -> tuple[date, int, str]:
	return (event.date, CATEGORY_ORDER[event.kind], event.event_id)


def resolve_entry_dates(entry: TemplateEntry, timeline: GrowthTimeline) -> list[date]:
	"""Absolute dates for one template entry, expanding recurring entries."""
	if entry.stage is not None:
		window = next(window for window in timeline.windows if window.stage == entry.stage)
		first = window.start_date + timedelta(days=min(entry.stage_day, window.duration_days - 1))
		last = window.end_date
	elif entry.day_offset is not None:
		first = timeline.start_date + timedelta(days=entry.day_offset)
		last = timeline.expected_harvest_date - timedelta(days=1)
	else:
		raise InvalidProfile(f"template entry {entry.action!r} has neither stage nor day_offset")

	if entry.repeat_every_days is None:
		return [first]

	dates: list[date] = []
	step = timedelta(days=entry.repeat_every_days)
	current = first
	while current <= last:
		dates.append(current)
		current += step
	return dates


def _stage_at(timeline: GrowthTimeline, day: date) -> str | None:
	idx = expected_stage_index(timeline.windows, day)
	return None if idx is None else timeline.windows[idx].stage


def _adjust_irrigation(
	event: Any,
	weather: WeatherSnapshot | None,
	satellite: SatelliteSnapshot | None,
	profile: CropProfileData,
	policy: EnginePolicy,
) -> None:
	if weather is not None:
		forecast = weather.forecast_for(event.date)
		if forecast is not None and forecast.precipitation_mm > policy.irrigation_skip_precipitation_mm:
			event.status = EventStatusEnum.skipped
			event.reason = SKIP_REASON_PRECIPITATION
			event.details = {
				"forecast_precipitation_mm": forecast.precipitation_mm,
				"threshold_mm": policy.irrigation_skip_precipitation_mm,
			}
	if satellite is not None and satellite.soil_moisture_pct is not None:
		if satellite.soil_moisture_pct > profile.tolerances.soil_moisture.maximum:
			event.advisories.append("soil_moisture_above_tolerance")


def _advise(
	event: Any,
	category: ActivityCategoryEnum,
	weather: WeatherSnapshot | None,
	profile: CropProfileData,
	policy: EnginePolicy,
) -> None:
	if weather is None:
		return
	forecast = weather.forecast_for(event.date)
	if forecast is None:
		return
	if forecast.precipitation_mm > policy.irrigation_skip_precipitation_mm:
		event.advisories.append("heavy_rain_forecast")
	if (
		category == ActivityCategoryEnum.pest_management
		and forecast.wind_speed_kmh is not None
		and forecast.wind_speed_kmh > policy.pest_wind_advisory_kmh
	):
		event.advisories.append("high_wind_forecast")
	if (
		category == ActivityCategoryEnum.fertilization
		and forecast.temperature_max_c is not None
		and forecast.temperature_max_c > profile.tolerances.temperature.maximum
	):
		event.advisories.append("heat_stress_forecast")


def build_activity_events(timeline: GrowthTimeline) -> list[ActivityEvent]:
	"""Generic events marking each stage start and the expected harvest."""
	events: list[ActivityEvent] = []
	for idx, window in enumerate(timeline.windows):
		events.append(
			ActivityEvent(
				event_id=f"activity-{window.start_date.isoformat()}-stage-{idx}",
				date=window.start_date,
				stage=window.stage,
				details={"transition": "stage_start", "stage_index": idx},
				actions=[ScheduledAction(action=f"Begin {window.stage} stage", quantity=0.0, unit="stage")],
			)
		)
	harvest = timeline.expected_harvest_date
	events.append(
		ActivityEvent(
			event_id=f"activity-{harvest.isoformat()}-harvest",
			date=harvest,
			stage=timeline.windows[-1].stage,
			details={"transition": "harvest"},
			actions=[ScheduledAction(action="Harvest", quantity=0.0, unit="event")],
		)
	)
	return events


def compose_activity_calendar(schedules: Schedules, activity_events: Iterable[Any]) -> Schedules:
	"""Deterministic presentation merge of every event on the calendar."""
	merged = [*schedules.all_events(), *activity_events]
	merged.sort(key=_event_sort_key)
	return schedules.model_copy(update={"activity_calendar": merged})


def synthesize_schedules(
	profile: CropProfileData,
	timeline: GrowthTimeline,
	planned_area: float,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> Schedules:
	policy = policy or EnginePolicy()
	scale = planned_area / profile.reference_area_ha
	weather = snapshot.fresh_weather(as_of) if snapshot is not None else None
	satellite = snapshot.fresh_satellite(as_of) if snapshot is not None else None

	grouped: dict[tuple[ActivityCategoryEnum, date], list[ScheduledAction]] = {}
	for category, entries in profile.templates().items():
		for idx, entry in enumerate(entries):
			action = ScheduledAction(
				action=entry.action,
				product=entry.product,
				quantity=entry.quantity * scale,
				unit=entry.unit,
				unit_cost=entry.unit_cost,
				template_index=idx,
				notes=entry.notes,
			)
			for day in resolve_entry_dates(entry, timeline):
				grouped.setdefault((category, day), []).append(action)

	by_category: dict[ActivityCategoryEnum, list[Any]] = {
		ActivityCategoryEnum.fertilization: [],
		ActivityCategoryEnum.irrigation: [],
		ActivityCategoryEnum.pest_management: [],
	}
	for (category, day), actions in sorted(grouped.items(), key=lambda item: (item[0][1], CATEGORY_ORDER[item[0][0].value])):
		event = EVENT_TYPES[category](
			event_id=f"{category.value}-{day.isoformat()}",
			date=day,
			stage=_stage_at(timeline, day),
			actions=[action.model_copy() for action in actions],
		)
		if category == ActivityCategoryEnum.irrigation:
			_adjust_irrigation(event, weather, satellite, profile, policy)
		else:
			_advise(event, category, weather, profile, policy)
		by_category[category].append(event)

	schedules = Schedules(
		fertilization=by_category[ActivityCategoryEnum.fertilization],
		irrigation=by_category[ActivityCategoryEnum.irrigation],
		pest_management=by_category[ActivityCategoryEnum.pest_management],
		environment_applied=weather is not None or satellite is not None,
	)
	return compose_activity_calendar(schedules, build_activity_events(timeline))


def merge_with_history(previous: Schedules, fresh: Schedules, as_of_day: date) -> Schedules:
	"""Keep events dated before ``as_of_day`` from ``previous``; take the rest from ``fresh``.

	Future events already confirmed as completed keep their status.
	"""
	completed_ahead = {
		event.event_id
		for event in previous.all_events()
		if event.date >= as_of_day and event.status == EventStatusEnum.completed
	}

	def _merge(old: list[Any], new: list[Any]) -> list[Any]:
		kept = [event for event in old if event.date < as_of_day]
		upcoming = []
		for event in new:
			if event.date < as_of_day:
				continue
			if event.event_id in completed_ahead:
				event = event.model_copy(update={"status": EventStatusEnum.completed, "reason": None})
			upcoming.append(event)
		return sorted([*kept, *upcoming], key=_event_sort_key)

	merged = Schedules(
		fertilization=_merge(previous.fertilization, fresh.fertilization),
		irrigation=_merge(previous.irrigation, fresh.irrigation),
		pest_management=_merge(previous.pest_management, fresh.pest_management),
		environment_applied=fresh.environment_applied,
	)
	old_activities = [event for event in previous.activity_calendar if event.kind == "activity" and event.date < as_of_day]
	new_activities = [event for event in fresh.activity_calendar if event.kind == "activity" and event.date >= as_of_day]
	return compose_activity_calendar(merged, [*old_activities, *new_activities])


def mark_completed(schedules: Schedules, event_ids: Iterable[str]) -> tuple[Schedules, list[str]]:
	"""Flag events as completed by id; returns the updated schedules and unknown ids."""
	wanted = set(event_ids)
	seen: set[str] = set()

	def _apply(events: list[Any]) -> list[Any]:
		result = []
		for event in events:
			if event.event_id in wanted:
				seen.add(event.event_id)
				event = event.model_copy(update={"status": EventStatusEnum.completed})
			result.append(event)
		return result

	updated = Schedules(
		fertilization=_apply(schedules.fertilization),
		irrigation=_apply(schedules.irrigation),
		pest_management=_apply(schedules.pest_management),
		environment_applied=schedules.environment_applied,
	)
	activities = [event for event in schedules.activity_calendar if event.kind == "activity"]
	return compose_activity_calendar(updated, activities), sorted(wanted - seen)


def skip_forecast_dates(
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> list[date]:
	"""Forecast dates whose precipitation would skip irrigation, for drift detection."""
	policy = policy or EnginePolicy()
	weather = snapshot.fresh_weather(as_of) if snapshot is not None else None
	if weather is None:
		return []
	return sorted(
		{
			item.date
			for item in weather.forecast
			if item.precipitation_mm > policy.irrigation_skip_precipitation_mm
		}
	)
