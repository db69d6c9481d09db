"""Progress tracking and drift detection for active calendars."""

from __future__ import annotations

from datetime import date, datetime

from cropcal.models.enums import CalendarStatusEnum
from cropcal.schemas.calendar import GenerationConditions, GrowthTimeline
from cropcal.schemas.environment import EnvironmentalSnapshot
from cropcal.services.policy import EnginePolicy
from cropcal.services.schedule_synthesizer import skip_forecast_dates
from cropcal.services.timeline_builder import expected_stage_index


def compute_progress(timeline: GrowthTimeline, day: date) -> float:
	elapsed = (day - timeline.start_date).days
	total = max(1, timeline.total_days)
	return round(min(100.0, max(0.0, elapsed / total * 100.0)), 2)


def lifecycle_status(timeline: GrowthTimeline, day: date) -> CalendarStatusEnum:
	if day < timeline.start_date:
		return CalendarStatusEnum.planned
	return CalendarStatusEnum.active


def current_stage(timeline: GrowthTimeline, day: date) -> str | None:
	idx = expected_stage_index(timeline.windows, day)
	return None if idx is None else timeline.windows[idx].stage


def stage_mismatch(expected_index: int | None, observed_index: int, policy: EnginePolicy) -> bool:
	"""True when the observed stage is far enough from the expected one to re-anchor."""
	baseline = 0 if expected_index is None else expected_index
	return abs(observed_index - baseline) >= policy.stage_mismatch_threshold


def summarize_conditions(
	snapshot: EnvironmentalSnapshot | None,
	location_hash: str,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> GenerationConditions:
	policy = policy or EnginePolicy()
	weather = snapshot.fresh_weather(as_of) if snapshot is not None else None
	satellite = snapshot.fresh_satellite(as_of) if snapshot is not None else None
	return GenerationConditions(
		captured_at=as_of,
		location_hash=location_hash,
		weather_fresh=weather is not None,
		satellite_fresh=satellite is not None,
		weather_observed_at=weather.observed_at if weather else None,
		satellite_observed_at=satellite.observed_at if satellite else None,
		temperature_c=weather.current_temperature_c if weather else None,
		ndvi=satellite.ndvi if satellite else None,
		soil_moisture_pct=satellite.soil_moisture_pct if satellite else None,
		soil_temperature_c=satellite.soil_temperature_c if satellite else None,
		skip_forecast_dates=skip_forecast_dates(snapshot, as_of, policy),
	)


def _exceeds(old: float | None, new: float | None, threshold: float) -> bool:
	return old is not None and new is not None and abs(new - old) >= threshold


def detect_drift(
	conditions: GenerationConditions,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> list[str]:
	"""Reasons the snapshot has moved away from what the calendar was built on.

	An empty list means the persisted schedule still holds.
	"""
	policy = policy or EnginePolicy()
	current = summarize_conditions(snapshot, conditions.location_hash, as_of, policy)
	reasons: list[str] = []

	if current.weather_fresh and not conditions.weather_fresh:
		reasons.append("weather_data_available")
	if current.satellite_fresh and not conditions.satellite_fresh:
		reasons.append("satellite_data_available")
	if _exceeds(conditions.temperature_c, current.temperature_c, policy.drift_temperature_delta_c):
		reasons.append("temperature_drift")
	if _exceeds(conditions.ndvi, current.ndvi, policy.drift_ndvi_delta):
		reasons.append("ndvi_drift")
	if _exceeds(conditions.soil_moisture_pct, current.soil_moisture_pct, policy.drift_soil_moisture_delta_pct):
		reasons.append("soil_moisture_drift")

	if current.weather_fresh:
		today = as_of.date()
		before = [day for day in conditions.skip_forecast_dates if day >= today]
		after = [day for day in current.skip_forecast_dates if day >= today]
		if before != after:
			reasons.append("forecast_skip_dates_changed")
	return reasons
