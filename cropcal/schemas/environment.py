"""Pydantic schemas for expiring weather / satellite snapshots."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=UTC)
	return value


# Providers may omit the offset; such timestamps are UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ForecastDay(BaseModel):
	date: date
	precipitation_mm: float = Field(default=0.0, ge=0)
	temperature_min_c: float | None = None
	temperature_max_c: float | None = None
	wind_speed_kmh: float | None = Field(default=None, ge=0)


class WeatherSnapshot(BaseModel):
	observed_at: UtcDatetime
	expires_at: UtcDatetime
	current_temperature_c: float | None = None
	humidity_pct: float | None = Field(default=None, ge=0, le=100)
	precipitation_last_24h_mm: float | None = Field(default=None, ge=0)
	wind_speed_kmh: float | None = Field(default=None, ge=0)
	forecast: list[ForecastDay] = Field(default_factory=list)

	def is_stale(self, as_of: datetime) -> bool:
		return self.expires_at <= as_of

	def forecast_for(self, day: date) -> ForecastDay | None:
		for item in self.forecast:
			if item.date == day:
				return item
		return None


class SatelliteSnapshot(BaseModel):
	observed_at: UtcDatetime
	expires_at: UtcDatetime
	ndvi: float | None = Field(default=None, ge=-1, le=1)
	evi: float | None = None
	soil_moisture_pct: float | None = Field(default=None, ge=0, le=100)
	soil_temperature_c: float | None = None
	soil_ph: float | None = Field(default=None, ge=0, le=14)
	cloud_cover_pct: float | None = Field(default=None, ge=0, le=100)
	confidence_score: float | None = Field(default=None, ge=0, le=1)

	def is_stale(self, as_of: datetime) -> bool:
		return self.expires_at <= as_of


class EnvironmentalSnapshot(BaseModel):
	"""Weather + satellite parts for one location; either part may be absent."""

	location_hash: str = Field(min_length=1, max_length=64)
	fetched_at: UtcDatetime
	weather: WeatherSnapshot | None = None
	satellite: SatelliteSnapshot | None = None

	def fresh_weather(self, as_of: datetime) -> WeatherSnapshot | None:
		if self.weather is None or self.weather.is_stale(as_of):
			return None
		return self.weather

	def fresh_satellite(self, as_of: datetime) -> SatelliteSnapshot | None:
		if self.satellite is None or self.satellite.is_stale(as_of):
			return None
		return self.satellite


class SnapshotReceipt(BaseModel):
	location_hash: str
	weather_stored: bool
	satellite_stored: bool
	calendars_scheduled: int = 0
