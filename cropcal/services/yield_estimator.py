"""Yield outlook — area-scaled yield estimate and the harvest window."""

from __future__ import annotations

from datetime import datetime, timedelta

from cropcal.schemas.calendar import GrowthTimeline, HarvestWindow, YieldEstimate
from cropcal.schemas.crop import CropProfileData
from cropcal.schemas.environment import EnvironmentalSnapshot
from cropcal.services.policy import EnginePolicy

SOIL_MOISTURE_GOOD = 1.1
SOIL_MOISTURE_POOR = 0.8
# points outside the tolerance band before moisture counts as poor
SOIL_MOISTURE_POOR_MARGIN_PCT = 10.0
NDVI_HEALTHY = 0.6
NDVI_HEALTHY_FACTOR = 1.2
NDVI_WEAK = 0.3
NDVI_WEAK_FACTOR = 0.7
BASE_CONFIDENCE = 0.6
SATELLITE_CONFIDENCE_WEIGHT = 0.3
MAX_CONFIDENCE = 0.95


def estimate_yield(
	profile: CropProfileData,
	planned_area: float,
	snapshot: EnvironmentalSnapshot | None,
	as_of: datetime,
) -> YieldEstimate:
	"""``expected_yield_per_hectare × planned_area``, adjusted by fresh satellite data.

	Soil moisture inside the profile's tolerance lifts the estimate; moisture
	well outside it, or weak NDVI, lowers it.  Stale or missing satellite
	data leaves the base estimate with base confidence.
	"""
	satellite = snapshot.fresh_satellite(as_of) if snapshot is not None else None
	multiplier = 1.0
	adjustments: list[str] = []
	confidence = BASE_CONFIDENCE

	if satellite is not None:
		moisture = satellite.soil_moisture_pct
		band = profile.tolerances.soil_moisture
		if moisture is not None:
			if band.minimum <= moisture <= band.maximum:
				multiplier *= SOIL_MOISTURE_GOOD
				adjustments.append("soil_moisture_within_tolerance")
			elif (
				moisture < band.minimum - SOIL_MOISTURE_POOR_MARGIN_PCT
				or moisture > band.maximum + SOIL_MOISTURE_POOR_MARGIN_PCT
			):
				multiplier *= SOIL_MOISTURE_POOR
				adjustments.append("soil_moisture_far_outside_tolerance")
		if satellite.ndvi is not None:
			if satellite.ndvi > NDVI_HEALTHY:
				multiplier *= NDVI_HEALTHY_FACTOR
				adjustments.append("healthy_vegetation")
			elif satellite.ndvi < NDVI_WEAK:
				multiplier *= NDVI_WEAK_FACTOR
				adjustments.append("weak_vegetation")
		score = satellite.confidence_score if satellite.confidence_score is not None else 1.0
		confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + score * SATELLITE_CONFIDENCE_WEIGHT)

	return YieldEstimate(
		amount=round(profile.expected_yield_per_hectare * planned_area * multiplier, 2),
		unit=profile.yield_unit.split("/")[0],
		confidence=round(confidence, 4),
		multiplier=round(multiplier, 4),
		adjustments=adjustments,
	)


def harvest_window(timeline: GrowthTimeline, policy: EnginePolicy) -> HarvestWindow:
	margin = timedelta(days=policy.harvest_window_days)
	optimal = timeline.expected_harvest_date
	return HarvestWindow(earliest_date=optimal - margin, optimal_date=optimal, latest_date=optimal + margin)
