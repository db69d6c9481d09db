"""Environmental snapshot provider: Redis cache, stored readings, optional remote refresh.

``get_snapshot`` never raises for provider trouble.  A failed or timed-out
remote fetch is logged and the newest stored readings are returned instead;
staleness is judged later by the engine against ``as_of``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime

import httpx
from pydantic import ValidationError
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.config import Settings, get_settings
from cropcal.errors import EnvironmentalDataUnavailable
from cropcal.models.environment import SatelliteData, WeatherData
from cropcal.schemas.environment import (
	EnvironmentalSnapshot,
	SatelliteSnapshot,
	SnapshotReceipt,
	WeatherSnapshot,
)

_logger = logging.getLogger("cropcal.environment")


def location_hash_for(latitude: float, longitude: float) -> str:
	"""Stable location key: SHA-256 of the coordinates rounded to 4 decimals."""
	return hashlib.sha256(f"{latitude:.4f},{longitude:.4f}".encode()).hexdigest()


def _snapshot_cache_key(location_hash: str) -> str:
	return f"snapshot:{location_hash}"


class EnvironmentService:
	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		settings: Settings | None = None,
	):
		self.db = db
		self.redis_client = redis_client
		self.settings = settings or get_settings()

	async def get_snapshot(self, location_hash: str, as_of: datetime) -> EnvironmentalSnapshot:
		cached = await self._read_cached(location_hash, as_of)
		if cached is not None:
			return cached

		snapshot = await self._load_stored(location_hash, as_of)
		if self._needs_refresh(snapshot, as_of):
			try:
				remote = await self._fetch_remote(location_hash, as_of)
			except EnvironmentalDataUnavailable as exc:
				_logger.warning(
					"environment_fetch_failed",
					extra={"location_hash": location_hash, "error": str(exc)},
				)
			else:
				await self._store_parts(remote)
				snapshot = self._prefer_newer(snapshot, remote)

		await self._write_cache(snapshot)
		return snapshot

	async def store_snapshot(self, snapshot: EnvironmentalSnapshot) -> SnapshotReceipt:
		await self._store_parts(snapshot)
		if self.redis_client is not None:
			await self.redis_client.delete(_snapshot_cache_key(snapshot.location_hash))
		return SnapshotReceipt(
			location_hash=snapshot.location_hash,
			weather_stored=snapshot.weather is not None,
			satellite_stored=snapshot.satellite is not None,
		)

	# ── Internals ──────────────────────────────────────────────────────────

	def _needs_refresh(self, snapshot: EnvironmentalSnapshot, as_of: datetime) -> bool:
		if not self.settings.environment_provider_url:
			return False
		return snapshot.fresh_weather(as_of) is None or snapshot.fresh_satellite(as_of) is None

	async def _load_stored(self, location_hash: str, as_of: datetime) -> EnvironmentalSnapshot:
		weather_row = (
			await self.db.execute(
				select(WeatherData)
				.where(WeatherData.location_hash == location_hash, WeatherData.observed_at <= as_of)
				.order_by(WeatherData.observed_at.desc())
				.limit(1)
			)
		).scalar_one_or_none()
		satellite_row = (
			await self.db.execute(
				select(SatelliteData)
				.where(SatelliteData.location_hash == location_hash, SatelliteData.observed_at <= as_of)
				.order_by(SatelliteData.observed_at.desc())
				.limit(1)
			)
		).scalar_one_or_none()

		weather = None
		if weather_row is not None:
			weather = WeatherSnapshot(
				observed_at=weather_row.observed_at,
				expires_at=weather_row.expires_at,
				current_temperature_c=weather_row.current_temperature_c,
				humidity_pct=weather_row.humidity_pct,
				precipitation_last_24h_mm=weather_row.precipitation_last_24h_mm,
				wind_speed_kmh=weather_row.wind_speed_kmh,
				forecast=weather_row.forecast_data or [],
			)
		satellite = None
		if satellite_row is not None:
			satellite = SatelliteSnapshot(
				observed_at=satellite_row.observed_at,
				expires_at=satellite_row.expires_at,
				ndvi=satellite_row.ndvi,
				evi=satellite_row.evi,
				soil_moisture_pct=satellite_row.soil_moisture_pct,
				soil_temperature_c=satellite_row.soil_temperature_c,
				soil_ph=satellite_row.soil_ph,
				cloud_cover_pct=satellite_row.cloud_cover_pct,
				confidence_score=satellite_row.confidence_score,
			)
		return EnvironmentalSnapshot(
			location_hash=location_hash,
			fetched_at=as_of,
			weather=weather,
			satellite=satellite,
		)

	async def _fetch_remote(self, location_hash: str, as_of: datetime) -> EnvironmentalSnapshot:
		url = f"{self.settings.environment_provider_url.rstrip('/')}/snapshots/{location_hash}"
		try:
			async with httpx.AsyncClient(timeout=self.settings.environment_timeout_seconds) as client:
				response = await client.get(url, params={"as_of": as_of.isoformat()})
				response.raise_for_status()
				payload = response.json()
			return EnvironmentalSnapshot.model_validate({**payload, "location_hash": location_hash})
		except (httpx.HTTPError, ValueError, ValidationError) as exc:
			raise EnvironmentalDataUnavailable(f"snapshot provider failed for {location_hash}: {exc}") from exc

	async def _store_parts(self, snapshot: EnvironmentalSnapshot) -> None:
		if snapshot.weather is not None:
			weather = snapshot.weather
			self.db.add(
				WeatherData(
					location_hash=snapshot.location_hash,
					observed_at=weather.observed_at,
					expires_at=weather.expires_at,
					current_temperature_c=weather.current_temperature_c,
					humidity_pct=weather.humidity_pct,
					precipitation_last_24h_mm=weather.precipitation_last_24h_mm,
					wind_speed_kmh=weather.wind_speed_kmh,
					forecast_data=[item.model_dump(mode="json") for item in weather.forecast],
				)
			)
		if snapshot.satellite is not None:
			satellite = snapshot.satellite
			self.db.add(
				SatelliteData(
					location_hash=snapshot.location_hash,
					observed_at=satellite.observed_at,
					expires_at=satellite.expires_at,
					ndvi=satellite.ndvi,
					evi=satellite.evi,
					soil_moisture_pct=satellite.soil_moisture_pct,
					soil_temperature_c=satellite.soil_temperature_c,
					soil_ph=satellite.soil_ph,
					cloud_cover_pct=satellite.cloud_cover_pct,
					confidence_score=satellite.confidence_score,
				)
			)
		await self.db.flush()

	@staticmethod
	def _prefer_newer(stored: EnvironmentalSnapshot, remote: EnvironmentalSnapshot) -> EnvironmentalSnapshot:
		weather = stored.weather
		if remote.weather is not None and (weather is None or remote.weather.observed_at >= weather.observed_at):
			weather = remote.weather
		satellite = stored.satellite
		if remote.satellite is not None and (
			satellite is None or remote.satellite.observed_at >= satellite.observed_at
		):
			satellite = remote.satellite
		return stored.model_copy(update={"weather": weather, "satellite": satellite})

	async def _read_cached(self, location_hash: str, as_of: datetime) -> EnvironmentalSnapshot | None:
		if self.redis_client is None:
			return None
		value = await self.redis_client.get(_snapshot_cache_key(location_hash))
		if value is None:
			return None
		snapshot = EnvironmentalSnapshot(**json.loads(value))
		parts = [part for part in (snapshot.weather, snapshot.satellite) if part is not None]
		if not parts or any(part.observed_at > as_of or part.is_stale(as_of) for part in parts):
			return None
		return snapshot

	async def _write_cache(self, snapshot: EnvironmentalSnapshot) -> None:
		if self.redis_client is None:
			return
		await self.redis_client.setex(
			_snapshot_cache_key(snapshot.location_hash),
			self.settings.environment_cache_ttl_seconds,
			snapshot.model_dump_json(),
		)
