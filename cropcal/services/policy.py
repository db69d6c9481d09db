"""Engine thresholds as an explicit, immutable value.

The pure pipeline modules take an ``EnginePolicy`` argument instead of reading
``get_settings()`` so that a run is fully determined by its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from cropcal.config import Settings, get_settings


@dataclass(frozen=True, slots=True)
class EnginePolicy:
	planting_grace_days: int = 7
	profile_fraction_tolerance: float = 0.001
	currency: str = "INR"
	irrigation_skip_precipitation_mm: float = 10.0
	pest_wind_advisory_kmh: float = 25.0
	forecast_horizon_days: int = 7
	drift_temperature_delta_c: float = 5.0
	drift_ndvi_delta: float = 0.1
	drift_soil_moisture_delta_pct: float = 15.0
	stage_mismatch_threshold: int = 1
	risk_low_threshold: float = 80.0
	risk_medium_threshold: float = 60.0
	pest_horizon_days: int = 14
	overdue_lookback_days: int = 7
	recommendation_top_n: int = 3
	harvest_window_days: int = 7

	@classmethod
	def from_settings(cls, settings: Settings | None = None) -> EnginePolicy:
		settings = settings or get_settings()
		return cls(
			planting_grace_days=settings.planting_grace_days,
			profile_fraction_tolerance=settings.profile_fraction_tolerance,
			currency=settings.currency,
			irrigation_skip_precipitation_mm=settings.irrigation_skip_precipitation_mm,
			pest_wind_advisory_kmh=settings.pest_wind_advisory_kmh,
			forecast_horizon_days=settings.forecast_horizon_days,
			drift_temperature_delta_c=settings.drift_temperature_delta_c,
			drift_ndvi_delta=settings.drift_ndvi_delta,
			drift_soil_moisture_delta_pct=settings.drift_soil_moisture_delta_pct,
			stage_mismatch_threshold=settings.stage_mismatch_threshold,
			risk_low_threshold=settings.risk_low_threshold,
			risk_medium_threshold=settings.risk_medium_threshold,
			pest_horizon_days=settings.pest_horizon_days,
			overdue_lookback_days=settings.overdue_lookback_days,
			recommendation_top_n=settings.recommendation_top_n,
			harvest_window_days=settings.harvest_window_days,
		)


def resolve_as_of(value: datetime | None) -> datetime:
	"""Explicit evaluation instant; naive values are taken as UTC."""
	if value is None:
		return datetime.now(UTC)
	if value.tzinfo is None:
		return value.replace(tzinfo=UTC)
	return value
