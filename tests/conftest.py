"""Shared pytest fixtures — async test client, fake DB session / Redis, crop fixtures."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from cropcal.database import get_db
from cropcal.main import app
from cropcal.schemas.crop import CropProfileData
from cropcal.schemas.environment import (
	EnvironmentalSnapshot,
	ForecastDay,
	SatelliteSnapshot,
	WeatherSnapshot,
)

LOCATION_HASH = "a" * 64


class FakeResult:
	def __init__(self, value: Any = None, values: list[Any] | None = None) -> None:
		self._value = value
		self._values = values or []

	def scalar_one_or_none(self) -> Any:
		return self._value

	def scalars(self) -> FakeResult:
		return self

	def all(self) -> list[Any]:
		return list(self._values)


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.flush = AsyncMock()
		self.execute = AsyncMock(return_value=FakeResult())
		self.refresh = AsyncMock(side_effect=self._refresh)
		self.add = MagicMock()

	async def _refresh(self, obj: Any) -> None:
		now = datetime.now(UTC)
		if getattr(obj, "id", None) is None:
			obj.id = uuid.uuid4()
		if getattr(obj, "created_at", None) is None:
			obj.created_at = now
		obj.updated_at = now


class FakeRedis:
	"""In-memory subset of ``redis.asyncio.Redis`` used by the services."""

	def __init__(self) -> None:
		self.store: dict[str, str] = {}
		self.set_calls: list[tuple[str, str, dict[str, Any]]] = []
		self.ping = AsyncMock(return_value=True)

	async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
		self.set_calls.append((key, value, {"nx": nx, "ex": ex}))
		if nx and key in self.store:
			return None
		self.store[key] = value
		return True

	async def setex(self, key: str, _ttl: int, value: str) -> bool:
		self.store[key] = value
		return True

	async def get(self, key: str) -> str | None:
		return self.store.get(key)

	async def getdel(self, key: str) -> str | None:
		return self.store.pop(key, None)

	async def delete(self, *keys: str) -> int:
		return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB dependency mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


def build_profile(**overrides: Any) -> CropProfileData:
	"""120-day crop with three equal stages and one template entry per category."""
	payload: dict[str, Any] = {
		"crop_id": uuid.UUID("22222222-2222-2222-2222-222222222222"),
		"crop_type": "test-wheat",
		"growing_period_days": 120,
		"growth_stages": [
			{"name": "vegetative", "relative_duration_fraction": 1 / 3, "sensitivity": 0.4},
			{"name": "flowering", "relative_duration_fraction": 1 / 3, "sensitivity": 0.9},
			{"name": "maturity", "relative_duration_fraction": 1 / 3, "sensitivity": 0.2},
		],
		"fertilization_schedule": [
			{"day_offset": 0, "action": "Base fertilizer", "product": "NPK 10-26-26", "quantity": 50.0,
				"unit_cost": {"min": 20.0, "max": 30.0}},
			{"stage": "flowering", "stage_day": 5, "action": "Top dressing", "product": "Urea", "quantity": 25.0,
				"unit_cost": {"min": 6.0, "max": 8.0}},
		],
		"irrigation_schedule": [
			{"day_offset": 40, "action": "Flood irrigation", "quantity": 50.0, "unit": "mm",
				"unit_cost": {"min": 4.0, "max": 6.0}},
		],
		"pest_management_schedule": [
			{"stage": "flowering", "stage_day": 10, "action": "Rust spray", "product": "Propiconazole",
				"quantity": 0.5, "unit": "l", "unit_cost": {"min": 700.0, "max": 900.0}},
		],
		"tolerances": {
			"temperature": {"minimum": 5.0, "maximum": 32.0, "optimal": 20.0},
			"soil_moisture": {"minimum": 25.0, "maximum": 70.0},
			"soil_ph": {"minimum": 6.0, "maximum": 7.5},
		},
		"expected_yield_per_hectare": 3.5,
	}
	payload.update(overrides)
	return CropProfileData(**payload)


@pytest.fixture
def profile() -> CropProfileData:
	return build_profile()


def build_snapshot(
	*,
	observed_at: datetime,
	ttl: timedelta = timedelta(days=1),
	forecast: dict[date, float] | None = None,
	temperature_c: float | None = 22.0,
	ndvi: float | None = None,
	soil_moisture_pct: float | None = 45.0,
	include_weather: bool = True,
	include_satellite: bool = True,
	satellite_ttl: timedelta | None = None,
) -> EnvironmentalSnapshot:
	weather = None
	if include_weather:
		weather = WeatherSnapshot(
			observed_at=observed_at,
			expires_at=observed_at + ttl,
			current_temperature_c=temperature_c,
			forecast=[
				ForecastDay(date=day, precipitation_mm=mm, temperature_min_c=10.0, temperature_max_c=25.0)
				for day, mm in sorted((forecast or {}).items())
			],
		)
	satellite = None
	if include_satellite:
		satellite = SatelliteSnapshot(
			observed_at=observed_at,
			expires_at=observed_at + (satellite_ttl or ttl),
			ndvi=ndvi,
			soil_moisture_pct=soil_moisture_pct,
			soil_ph=6.8,
		)
	return EnvironmentalSnapshot(
		location_hash=LOCATION_HASH,
		fetched_at=observed_at,
		weather=weather,
		satellite=satellite,
	)


@pytest.fixture
def snapshot_factory() -> Callable[..., EnvironmentalSnapshot]:
	return build_snapshot


@pytest.fixture
def profile_factory() -> Callable[..., CropProfileData]:
	return build_profile
