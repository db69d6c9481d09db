from __future__ import annotations

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest
from httpx import AsyncClient

from cropcal.errors import (
	CalendarClosed,
	InvalidObservation,
	InvalidPlantingDate,
	InvalidProfile,
	NotFound,
	RecalculationConflict,
)
from cropcal.schemas.calendar import CropCalendarRead, TickOutcome
from cropcal.services.calendar_service import CalendarService
from cropcal.services.pipeline import generate_state

LOCATION_HASH = "a" * 64


def _calendar_read(profile) -> CropCalendarRead:
	state = generate_state(profile, date(2024, 1, 1), 2.0, LOCATION_HASH, None, datetime(2024, 1, 1, tzinfo=UTC))
	return CropCalendarRead(
		calendar_id=uuid4(),
		user_id=uuid4(),
		farm_id=uuid4(),
		crop_id=profile.crop_id,
		planned_area=2.0,
		location_hash=LOCATION_HASH,
		**state.model_dump(),
	)


def _create_body() -> dict[str, object]:
	return {
		"user_id": str(uuid4()),
		"farm_id": str(uuid4()),
		"crop_id": str(uuid4()),
		"planned_area": 2.0,
		"planting_date": "2024-01-01",
		"farm": {"latitude": 28.6139, "longitude": 77.209, "total_farm_size": 5.0, "soil_type": "loam"},
	}


@pytest.mark.asyncio
async def test_create_calendar(client: AsyncClient, monkeypatch: pytest.MonkeyPatch, profile) -> None:
	calendar = _calendar_read(profile)

	async def fake_create(self: CalendarService, payload: object) -> CropCalendarRead:
		return calendar

	monkeypatch.setattr(CalendarService, "create_calendar", fake_create)

	response = await client.post("/api/v1/calendars", json=_create_body())

	assert response.status_code == 201
	body = response.json()
	assert body["calendar_id"] == str(calendar.calendar_id)
	assert body["expected_harvest_date"] == "2024-04-30"
	assert [w["stage"] for w in body["growth_timeline"]] == ["vegetative", "flowering", "maturity"]
	assert body["irrigation_schedule"][0]["kind"] == "irrigation"
	assert body["cost_estimation"]["currency"] == "INR"


@pytest.mark.asyncio
async def test_create_calendar_rejects_non_positive_area(client: AsyncClient) -> None:
	body = _create_body()
	body["planned_area"] = 0

	response = await client.post("/api/v1/calendars", json=body)

	assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("error", "status_code"),
	[
		(InvalidProfile("fractions"), 422),
		(InvalidPlantingDate("too old"), 400),
		(ValueError("planned_area exceeds"), 400),
		(NotFound("Crop profile missing"), 404),
		(RuntimeError("boom"), 500),
	],
)
async def test_create_calendar_error_mapping(
	client: AsyncClient,
	monkeypatch: pytest.MonkeyPatch,
	error: Exception,
	status_code: int,
) -> None:
	async def fake_create(self: CalendarService, payload: object) -> CropCalendarRead:
		raise error

	monkeypatch.setattr(CalendarService, "create_calendar", fake_create)

	response = await client.post("/api/v1/calendars", json=_create_body())

	assert response.status_code == status_code


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("error", "status_code"),
	[
		(CalendarClosed("completed"), 409),
		(RecalculationConflict("cal-1"), 409),
		(InvalidObservation("unknown growth stage"), 400),
		(NotFound("Calendar missing"), 404),
	],
)
async def test_observation_error_mapping(
	client: AsyncClient,
	monkeypatch: pytest.MonkeyPatch,
	error: Exception,
	status_code: int,
) -> None:
	async def fake_observe(self: CalendarService, calendar_id: object, payload: object) -> CropCalendarRead:
		raise error

	monkeypatch.setattr(CalendarService, "report_observation", fake_observe)

	response = await client.post(
		f"/api/v1/calendars/{uuid4()}/observations",
		json={"observed_stage": "flowering"},
	)

	assert response.status_code == status_code


@pytest.mark.asyncio
async def test_tick_without_body_uses_current_time(
	client: AsyncClient,
	monkeypatch: pytest.MonkeyPatch,
	profile,
) -> None:
	calendar = _calendar_read(profile)
	seen: list[object] = []

	async def fake_tick(self: CalendarService, calendar_id: object, as_of: object) -> TickOutcome:
		seen.append(as_of)
		return TickOutcome(calendar=calendar, recalculated=True, reasons=["temperature_drift"])

	monkeypatch.setattr(CalendarService, "tick", fake_tick)

	response = await client.post(f"/api/v1/calendars/{calendar.calendar_id}/tick")

	assert response.status_code == 200
	assert response.json()["reasons"] == ["temperature_drift"]
	assert seen == [None]


@pytest.mark.asyncio
async def test_tick_with_explicit_as_of(client: AsyncClient, monkeypatch: pytest.MonkeyPatch, profile) -> None:
	calendar = _calendar_read(profile)
	seen: list[object] = []

	async def fake_tick(self: CalendarService, calendar_id: object, as_of: datetime) -> TickOutcome:
		seen.append(as_of)
		return TickOutcome(calendar=calendar)

	monkeypatch.setattr(CalendarService, "tick", fake_tick)

	response = await client.post(
		f"/api/v1/calendars/{calendar.calendar_id}/tick",
		json={"as_of": "2024-02-01T06:00:00Z"},
	)

	assert response.status_code == 200
	assert seen == [datetime(2024, 2, 1, 6, 0, tzinfo=UTC)]


@pytest.mark.asyncio
async def test_get_unknown_calendar_is_404(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
	async def fake_get(self: CalendarService, calendar_id: object) -> CropCalendarRead:
		raise NotFound(f"Calendar {calendar_id} not found")

	monkeypatch.setattr(CalendarService, "get_calendar", fake_get)

	response = await client.get(f"/api/v1/calendars/{uuid4()}")

	assert response.status_code == 404


@pytest.mark.asyncio
async def test_calendars_openapi_contract(client: AsyncClient) -> None:
	response = await client.get("/openapi.json")
	assert response.status_code == 200
	paths = response.json()["paths"]
	assert "/api/v1/calendars" in paths
	assert "/api/v1/calendars/{calendar_id}" in paths
	assert "/api/v1/calendars/{calendar_id}/tick" in paths
	assert "/api/v1/calendars/{calendar_id}/observations" in paths
	assert "/api/v1/calendars/{calendar_id}/abandon" in paths
	assert "/api/v1/crops/{crop_id}" in paths
	assert "/api/v1/environment/snapshots" in paths
