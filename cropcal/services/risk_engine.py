"""Risk assessment engine — scores crop health against the profile's tolerances.

The score starts at 100 and each factor subtracts a weighted penalty.
Environmental penalties are scaled by how close the current stage is to
the profile's most sensitive stage.  Stale or missing snapshot parts are
left out of scoring; they add a zero-weight note and lower confidence
instead, so an assessment is always produced.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

from cropcal.models.enums import EventStatusEnum, RiskLevelEnum
from cropcal.schemas.calendar import GrowthTimeline, RiskAssessment, RiskFactor, Schedules
from cropcal.schemas.crop import CropProfileData, NdviRange, ToleranceRange
from cropcal.schemas.environment import EnvironmentalSnapshot, SatelliteSnapshot, WeatherSnapshot
from cropcal.services.policy import EnginePolicy
from cropcal.services.timeline_builder import expected_stage_index

STALE_CONFIDENCE_PENALTY = 0.25
MISSING_CONFIDENCE_PENALTY = 0.35
MIN_CONFIDENCE = 0.1
NDVI_BAND = 0.15


def classify_score(score: float, policy: EnginePolicy) -> RiskLevelEnum:
	if score >= policy.risk_low_threshold:
		return RiskLevelEnum.low
	if score >= policy.risk_medium_threshold:
		return RiskLevelEnum.medium
	return RiskLevelEnum.high


def stage_weight(profile: CropProfileData, timeline: GrowthTimeline, day: date) -> float:
	"""``0.5 + 0.5 × closeness`` to the most sensitive stage's window.

	Closeness is 1 inside the peak window and decays linearly to 0 over one
	average stage length.
	"""
	sensitivities = [stage.sensitivity for stage in profile.growth_stages]
	peak = timeline.windows[sensitivities.index(max(sensitivities))]
	if day < peak.start_date:
		distance = (peak.start_date - day).days
	elif day > peak.end_date:
		distance = (day - peak.end_date).days
	else:
		distance = 0
	average_stage = max(1.0, timeline.total_days / len(timeline.windows))
	closeness = max(0.0, 1.0 - distance / average_stage)
	return 0.5 + 0.5 * closeness


def expected_ndvi_range(profile: CropProfileData, timeline: GrowthTimeline, day: date, stage_index: int) -> NdviRange:
	"""Stage-declared NDVI range, else a rise-then-decline curve over crop progress."""
	declared = profile.growth_stages[stage_index].expected_ndvi
	if declared is not None:
		return declared
	fraction = min(1.0, max(0.0, (day - timeline.start_date).days / max(1, timeline.total_days)))
	if fraction <= 0.5:
		center = 0.2 + fraction
	else:
		center = 0.7 - 0.8 * (fraction - 0.5)
	return NdviRange(minimum=max(-1.0, center - NDVI_BAND), maximum=min(1.0, center + NDVI_BAND))


def _deviation(value: float, tolerance: ToleranceRange) -> float:
	if value < tolerance.minimum:
		return value - tolerance.minimum
	if value > tolerance.maximum:
		return value - tolerance.maximum
	return 0.0


def _weather_factors(
	weather: WeatherSnapshot,
	profile: CropProfileData,
	day: date,
	weight: float,
	policy: EnginePolicy,
) -> list[RiskFactor]:
	factors: list[RiskFactor] = []
	tolerance = profile.tolerances.temperature

	if weather.current_temperature_c is not None:
		delta = _deviation(weather.current_temperature_c, tolerance)
		if delta:
			direction = "above" if delta > 0 else "below"
			factors.append(
				RiskFactor(
					code=f"temperature_{direction}_tolerance",
					weight=round(min(25.0, 5.0 + 2.0 * abs(delta)) * weight, 2),
					message=(
						f"Air temperature {weather.current_temperature_c:.1f}°C is {abs(delta):.1f}°C "
						f"{direction} the crop's tolerated range"
					),
					details={"temperature_c": weather.current_temperature_c, "delta_c": round(delta, 2)},
				)
			)

	horizon_end = day + timedelta(days=policy.forecast_horizon_days)
	upcoming = [item for item in weather.forecast if day <= item.date < horizon_end]
	hot = sorted(
		item.date for item in upcoming
		if item.temperature_max_c is not None and item.temperature_max_c > tolerance.maximum
	)
	cold = sorted(
		item.date for item in upcoming
		if item.temperature_min_c is not None and item.temperature_min_c < tolerance.minimum
	)
	for code, dates, label in (("forecast_heat_stress", hot, "above"), ("forecast_cold_stress", cold, "below")):
		if not dates:
			continue
		factors.append(
			RiskFactor(
				code=code,
				weight=round(min(15.0, 3.0 * len(dates)) * weight, 2),
				message=(
					f"{len(dates)} forecast day(s) {label} the crop's temperature range, "
					f"first on {dates[0].isoformat()}"
				),
				details={"dates": [item.isoformat() for item in dates]},
			)
		)
	return factors


def _satellite_factors(
	satellite: SatelliteSnapshot,
	profile: CropProfileData,
	timeline: GrowthTimeline,
	day: date,
	stage_index: int | None,
	weight: float,
) -> list[RiskFactor]:
	factors: list[RiskFactor] = []

	if satellite.soil_moisture_pct is not None:
		delta = _deviation(satellite.soil_moisture_pct, profile.tolerances.soil_moisture)
		if delta:
			direction = "above" if delta > 0 else "below"
			factors.append(
				RiskFactor(
					code=f"soil_moisture_{direction}_tolerance",
					weight=round(min(20.0, 4.0 + 0.5 * abs(delta)) * weight, 2),
					message=f"Soil moisture {satellite.soil_moisture_pct:.1f}% is {abs(delta):.1f} points {direction} tolerance",
					details={"soil_moisture_pct": satellite.soil_moisture_pct, "delta_pct": round(delta, 2)},
				)
			)

	if satellite.soil_ph is not None:
		delta = _deviation(satellite.soil_ph, profile.tolerances.soil_ph)
		if delta:
			factors.append(
				RiskFactor(
					code="soil_ph_out_of_range",
					weight=round(min(15.0, 5.0 + 5.0 * abs(delta)) * weight, 2),
					message=f"Soil pH {satellite.soil_ph:.1f} is outside the crop's range",
					details={"soil_ph": satellite.soil_ph, "delta": round(delta, 2)},
				)
			)

	if satellite.ndvi is not None and stage_index is not None:
		expected = expected_ndvi_range(profile, timeline, day, stage_index)
		if satellite.ndvi < expected.minimum:
			shortfall = expected.minimum - satellite.ndvi
			factors.append(
				RiskFactor(
					code="ndvi_below_expected",
					weight=round(min(20.0, 5.0 + 50.0 * shortfall), 2),
					message=(
						f"NDVI {satellite.ndvi:.2f} is below the {expected.minimum:.2f} expected "
						f"during {profile.growth_stages[stage_index].name}"
					),
					details={
						"ndvi": satellite.ndvi,
						"expected_min": round(expected.minimum, 3),
						"expected_max": round(expected.maximum, 3),
					},
				)
			)
	return factors


def _pest_factors(schedules: Schedules, day: date, policy: EnginePolicy) -> list[RiskFactor]:
	horizon_end = day + timedelta(days=policy.pest_horizon_days)
	lookback_start = day - timedelta(days=policy.overdue_lookback_days)
	planned = [event for event in schedules.pest_management if event.status == EventStatusEnum.planned]
	pending = [event for event in planned if day <= event.date < horizon_end]
	overdue = [event for event in planned if lookback_start <= event.date < day]

	factors: list[RiskFactor] = []
	if overdue:
		factors.append(
			RiskFactor(
				code="overdue_pest_management",
				weight=round(min(20.0, 8.0 * len(overdue)), 2),
				message=f"{len(overdue)} pest management event(s) are overdue",
				details={"event_ids": [event.event_id for event in overdue]},
			)
		)
	if pending:
		factors.append(
			RiskFactor(
				code="pest_activity_due",
				weight=round(min(10.0, 2.0 * len(pending)), 2),
				message=(
					f"{len(pending)} pest management event(s) due within "
					f"{policy.pest_horizon_days} days"
				),
				details={"event_ids": [event.event_id for event in pending]},
			)
		)
	return factors


def _data_note(part: str, present: Any, fresh: Any) -> RiskFactor | None:
	if fresh is not None:
		return None
	state = "stale" if present is not None else "missing"
	return RiskFactor(
		code=f"{state}_{part}_data",
		weight=0.0,
		message=f"{part.capitalize()} data is {state}; related checks were skipped",
	)


def assess_risk(
	profile: CropProfileData,
	timeline: GrowthTimeline,
	schedules: Schedules,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> RiskAssessment:
	policy = policy or EnginePolicy()
	day = as_of.date()
	stage_index = expected_stage_index(timeline.windows, day)
	weight = stage_weight(profile, timeline, day)

	weather_present = snapshot.weather if snapshot is not None else None
	satellite_present = snapshot.satellite if snapshot is not None else None
	weather = snapshot.fresh_weather(as_of) if snapshot is not None else None
	satellite = snapshot.fresh_satellite(as_of) if snapshot is not None else None

	factors: list[RiskFactor] = []
	confidence = 1.0
	if weather is not None:
		factors.extend(_weather_factors(weather, profile, day, weight, policy))
	if satellite is not None:
		factors.extend(_satellite_factors(satellite, profile, timeline, day, stage_index, weight))
	factors.extend(_pest_factors(schedules, day, policy))

	for part, present, fresh in (
		("weather", weather_present, weather),
		("satellite", satellite_present, satellite),
	):
		note = _data_note(part, present, fresh)
		if note is None:
			continue
		factors.append(note)
		confidence -= STALE_CONFIDENCE_PENALTY if present is not None else MISSING_CONFIDENCE_PENALTY

	if satellite is not None and satellite.confidence_score is not None:
		confidence = min(confidence, 0.5 + 0.5 * satellite.confidence_score)

	score = round(max(0.0, 100.0 - sum(factor.weight for factor in factors)), 2)
	factors.sort(key=lambda factor: (-factor.weight, factor.code))
	return RiskAssessment(
		score=score,
		risk_level=classify_score(score, policy),
		confidence_level=round(max(MIN_CONFIDENCE, confidence), 2),
		stage=None if stage_index is None else timeline.windows[stage_index].stage,
		assessed_on=day,
		factors=factors,
	)
