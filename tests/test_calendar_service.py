from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

from cropcal.errors import CalendarClosed, InvalidObservation
from cropcal.models.enums import CalendarStatusEnum, EventStatusEnum
from cropcal.schemas.calendar import CalendarCreate, FarmContext, ObservationReport
from cropcal.services.calendar_service import CalendarService
from cropcal.services.crop_profile_service import CropProfileService
from cropcal.services.environment_service import EnvironmentService, location_hash_for
from cropcal.services.policy import EnginePolicy
from cropcal.services.recalculation import RecalculationCoordinator

from conftest import FakeResult

CREATED = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def snapshot_mock(monkeypatch, snapshot_factory) -> AsyncMock:
	mock = AsyncMock(return_value=snapshot_factory(observed_at=datetime(2024, 1, 1, 6, 0, tzinfo=UTC)))
	monkeypatch.setattr(EnvironmentService, "get_snapshot", mock)
	return mock


@pytest.fixture
def service(monkeypatch, fake_db_session, profile, snapshot_mock) -> CalendarService:
	monkeypatch.setattr(CropProfileService, "get_crop_profile", AsyncMock(return_value=profile))
	return CalendarService(fake_db_session, coordinator=RecalculationCoordinator(), policy=EnginePolicy())


def _payload(**overrides) -> CalendarCreate:
	data = {
		"user_id": uuid.uuid4(),
		"farm_id": uuid.uuid4(),
		"crop_id": uuid.UUID("22222222-2222-2222-2222-222222222222"),
		"planned_area": 2.0,
		"planting_date": date(2024, 1, 1),
		"farm": FarmContext(latitude=28.6139, longitude=77.209, total_farm_size=5.0),
		"as_of": CREATED,
	}
	data.update(overrides)
	return CalendarCreate(**data)


async def _create(service, fake_db_session):
	created = await service.create_calendar(_payload())
	calendar = fake_db_session.add.call_args.args[0]
	fake_db_session.execute.return_value = FakeResult(calendar)
	return created, calendar


async def test_create_calendar_generates_and_persists(service, fake_db_session) -> None:
	created, calendar = await _create(service, fake_db_session)

	assert created.calendar_status == CalendarStatusEnum.active
	assert created.current_growth_stage == "vegetative"
	assert created.expected_harvest_date == date(2024, 4, 30)
	assert created.location_hash == location_hash_for(28.6139, 77.209)
	assert created.last_tick_at == CREATED
	assert created.generation_conditions.weather_fresh is True
	assert calendar.profile_version == 1
	assert created.yield_estimate.amount == 7.7
	assert calendar.harvest_window == {
		"earliest_date": "2024-04-23",
		"optimal_date": "2024-04-30",
		"latest_date": "2024-05-07",
	}
	fake_db_session.flush.assert_awaited_once()


async def test_planned_area_cannot_exceed_farm_size(service) -> None:
	with pytest.raises(ValueError, match="exceeds total_farm_size"):
		await service.create_calendar(_payload(planned_area=7.5))


async def test_tick_without_drift_keeps_schedule(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)
	as_of = datetime(2024, 1, 1, 20, 0, tzinfo=UTC)

	outcome = await service.tick(created.calendar_id, as_of)

	assert outcome.recalculated is False
	assert outcome.reasons == []
	assert outcome.calendar.last_tick_at == as_of
	assert outcome.calendar.generation_conditions == created.generation_conditions
	fake_db_session.commit.assert_awaited_once()


async def test_tick_recalculates_on_drift(service, fake_db_session, snapshot_mock, snapshot_factory) -> None:
	created, _ = await _create(service, fake_db_session)
	as_of = datetime(2024, 1, 2, 8, 0, tzinfo=UTC)
	snapshot_mock.return_value = snapshot_factory(
		observed_at=datetime(2024, 1, 2, 6, 0, tzinfo=UTC),
		temperature_c=30.0,
	)

	outcome = await service.tick(created.calendar_id, as_of)

	assert outcome.recalculated is True
	assert outcome.reasons == ["temperature_drift"]
	assert outcome.calendar.generation_conditions.captured_at == as_of
	assert outcome.calendar.generation_conditions.temperature_c == 30.0


async def test_tick_older_than_last_tick_is_ignored(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)

	outcome = await service.tick(created.calendar_id, datetime(2023, 12, 31, tzinfo=UTC))

	assert outcome.reasons == ["stale_tick"]
	fake_db_session.commit.assert_not_awaited()


async def test_tick_yields_to_lease_holder(service, fake_db_session, fake_redis) -> None:
	created, _ = await _create(service, fake_db_session)
	service.redis_client = fake_redis
	fake_redis.store[f"calendar:{created.calendar_id}:recalc"] = "other-worker"

	outcome = await service.tick(created.calendar_id, datetime(2024, 1, 2, tzinfo=UTC))

	assert outcome.reasons == ["recalculation_in_progress"]
	assert outcome.calendar.last_tick_at == CREATED
	fake_db_session.commit.assert_not_awaited()


async def test_observed_two_stages_ahead_reanchors(service, fake_db_session, snapshot_mock, snapshot_factory) -> None:
	created, calendar = await _create(service, fake_db_session)
	as_of = datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
	snapshot_mock.return_value = snapshot_factory(observed_at=as_of, temperature_c=19.0)

	updated = await service.report_observation(
		created.calendar_id,
		ObservationReport(observed_stage="maturity", as_of=as_of),
	)

	assert [w.start_date for w in updated.growth_timeline] == [date(2024, 1, 1), date(2024, 1, 6), date(2024, 1, 11)]
	assert updated.current_growth_stage == "maturity"
	assert updated.expected_harvest_date == date(2024, 2, 20)
	assert updated.generation_conditions.captured_at == as_of
	assert updated.generation_conditions.temperature_c == 19.0
	assert calendar.last_observed_stage == "maturity"


async def test_observation_on_schedule_does_not_reanchor(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)

	updated = await service.report_observation(
		created.calendar_id,
		ObservationReport(observed_stage="vegetative", as_of=datetime(2024, 1, 5, tzinfo=UTC)),
	)

	assert updated.growth_timeline == created.growth_timeline
	assert updated.generation_conditions == created.generation_conditions


async def test_completed_event_ids_are_recorded(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)

	updated = await service.report_observation(
		created.calendar_id,
		ObservationReport(completed_event_ids=["fertilization-2024-01-01"], as_of=datetime(2024, 1, 2, tzinfo=UTC)),
	)

	assert updated.fertilization_schedule[0].status == EventStatusEnum.completed

	with pytest.raises(InvalidObservation, match="unknown event ids"):
		await service.report_observation(
			created.calendar_id,
			ObservationReport(completed_event_ids=["irrigation-1999-01-01"], as_of=datetime(2024, 1, 2, tzinfo=UTC)),
		)


async def test_harvest_closes_the_calendar(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)
	as_of = datetime(2024, 4, 28, 10, 0, tzinfo=UTC)

	harvested = await service.report_observation(
		created.calendar_id,
		ObservationReport(actual_harvest_date=date(2024, 4, 28), actual_yield=6.8, as_of=as_of),
	)

	assert harvested.calendar_status == CalendarStatusEnum.completed
	assert harvested.progress_percentage == 100.0
	assert harvested.actual_yield == 6.8

	with pytest.raises(CalendarClosed):
		await service.report_observation(created.calendar_id, ObservationReport(observed_stage="maturity", as_of=as_of))

	outcome = await service.tick(created.calendar_id, datetime(2024, 5, 1, tzinfo=UTC))
	assert outcome.recalculated is False
	assert outcome.calendar.calendar_status == CalendarStatusEnum.completed

	with pytest.raises(CalendarClosed):
		await service.abandon_calendar(created.calendar_id)


async def test_replant_regenerates_from_new_date(service, fake_db_session) -> None:
	created, calendar = await _create(service, fake_db_session)
	as_of = datetime(2024, 1, 10, tzinfo=UTC)

	replanted = await service.report_observation(
		created.calendar_id,
		ObservationReport(replant_date=date(2024, 1, 12), as_of=as_of),
	)

	assert replanted.planting_date == date(2024, 1, 12)
	assert replanted.calendar_status == CalendarStatusEnum.planned
	assert replanted.progress_percentage == 0.0
	assert calendar.last_tick_at == as_of


async def test_abandon_calendar(service, fake_db_session) -> None:
	created, _ = await _create(service, fake_db_session)

	abandoned = await service.abandon_calendar(created.calendar_id)

	assert abandoned.calendar_status == CalendarStatusEnum.abandoned
	with pytest.raises(CalendarClosed):
		await service.report_observation(created.calendar_id, ObservationReport(observed_stage="vegetative"))


async def test_harvest_with_pending_contender_is_not_replayed(service, fake_db_session, fake_redis) -> None:
	created, _ = await _create(service, fake_db_session)
	service.redis_client = fake_redis
	fake_redis.store[f"calendar:{created.calendar_id}:recalc:pending"] = "1"

	harvested = await service.report_observation(
		created.calendar_id,
		ObservationReport(actual_harvest_date=date(2024, 4, 28), actual_yield=6.8, as_of=datetime(2024, 4, 28, tzinfo=UTC)),
	)

	assert harvested.calendar_status == CalendarStatusEnum.completed
	assert harvested.actual_yield == 6.8
	assert f"calendar:{created.calendar_id}:recalc:pending" not in fake_redis.store
	assert f"calendar:{created.calendar_id}:recalc" not in fake_redis.store
