"""Crop calendar orchestration — creation, ticks, observations, lifecycle.

The service loads inputs (crop profile, environmental snapshot, persisted
calendar), runs the pure pipeline in memory and only then writes the result
onto the ORM row.  Every mutation of an existing calendar goes through the
``RecalculationCoordinator`` and re-reads the row ``FOR UPDATE``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.errors import CalendarClosed, InvalidObservation, NotFound, RecalculationConflict
from cropcal.models.calendar import CropCalendar
from cropcal.models.enums import CalendarStatusEnum
from cropcal.schemas.calendar import (
	CalendarCreate,
	CalendarState,
	CropCalendarRead,
	ObservationReport,
	TickOutcome,
)
from cropcal.schemas.crop import CropProfileData
from cropcal.services.crop_profile_service import CropProfileService
from cropcal.services.environment_service import EnvironmentService, location_hash_for
from cropcal.services.pipeline import complete_state, generate_state, recalculate_state, refresh_state
from cropcal.services.policy import EnginePolicy, resolve_as_of
from cropcal.services.progress_tracker import detect_drift, stage_mismatch
from cropcal.services.recalculation import RecalculationCoordinator, get_recalculation_coordinator
from cropcal.services.schedule_synthesizer import mark_completed
from cropcal.services.timeline_builder import expected_stage_index

_logger = logging.getLogger("cropcal.calendar")

CLOSED_STATUSES = frozenset({CalendarStatusEnum.completed, CalendarStatusEnum.abandoned})

SCALAR_STATE_FIELDS = (
	"planting_date",
	"expected_harvest_date",
	"calendar_status",
	"current_growth_stage",
	"progress_percentage",
)
DOCUMENT_STATE_FIELDS = (
	"growth_timeline",
	"fertilization_schedule",
	"irrigation_schedule",
	"pest_management_schedule",
	"activity_calendar",
	"ai_recommendations",
	"risk_assessment",
	"cost_estimation",
	"generation_conditions",
	"yield_estimate",
	"harvest_window",
)


def state_of(calendar: CropCalendar) -> CalendarState:
	fields = SCALAR_STATE_FIELDS + DOCUMENT_STATE_FIELDS
	return CalendarState.model_validate({field: getattr(calendar, field) for field in fields})


def apply_state(calendar: CropCalendar, state: CalendarState) -> list[str]:
	"""Copy a pipeline result onto the row; returns the names of changed columns."""
	documents = state.model_dump(mode="json", include=set(DOCUMENT_STATE_FIELDS))
	changed: list[str] = []
	for field in SCALAR_STATE_FIELDS:
		value = getattr(state, field)
		if getattr(calendar, field, None) != value:
			setattr(calendar, field, value)
			changed.append(field)
	for field in DOCUMENT_STATE_FIELDS:
		value = documents[field]
		if getattr(calendar, field, None) != value:
			setattr(calendar, field, value)
			changed.append(field)
	return changed


def to_read(calendar: CropCalendar) -> CropCalendarRead:
	payload: dict[str, Any] = {
		field: getattr(calendar, field) for field in SCALAR_STATE_FIELDS + DOCUMENT_STATE_FIELDS
	}
	return CropCalendarRead(
		calendar_id=calendar.id,
		user_id=calendar.user_id,
		farm_id=calendar.farm_id,
		crop_id=calendar.crop_id,
		crop_variety=calendar.crop_variety,
		planned_area=calendar.planned_area,
		location_hash=calendar.location_hash,
		actual_harvest_date=calendar.actual_harvest_date,
		actual_yield=calendar.actual_yield,
		yield_unit=calendar.yield_unit,
		last_tick_at=calendar.last_tick_at,
		created_at=calendar.created_at,
		updated_at=calendar.updated_at,
		**payload,
	)


class CalendarService:
	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		coordinator: RecalculationCoordinator | None = None,
		policy: EnginePolicy | None = None,
	):
		self.db = db
		self.redis_client = redis_client
		self.coordinator = coordinator or get_recalculation_coordinator()
		self.policy = policy or EnginePolicy.from_settings()

	async def create_calendar(self, payload: CalendarCreate) -> CropCalendarRead:
		as_of = resolve_as_of(payload.as_of)
		if payload.planned_area > payload.farm.total_farm_size:
			raise ValueError(
				f"planned_area {payload.planned_area} exceeds total_farm_size {payload.farm.total_farm_size}"
			)

		profile = await CropProfileService(self.db).get_crop_profile(payload.crop_id)
		location_hash = location_hash_for(payload.farm.latitude, payload.farm.longitude)
		snapshot = await EnvironmentService(self.db, self.redis_client).get_snapshot(location_hash, as_of)
		state = generate_state(
			profile,
			payload.planting_date,
			payload.planned_area,
			location_hash,
			snapshot,
			as_of,
			self.policy,
		)

		calendar = CropCalendar(
			user_id=payload.user_id,
			farm_id=payload.farm_id,
			crop_id=payload.crop_id,
			crop_variety=payload.crop_variety,
			profile_version=profile.version,
			planned_area=payload.planned_area,
			location_hash=location_hash,
			farm_context=payload.farm.model_dump(mode="json"),
			yield_unit=profile.yield_unit,
			last_tick_at=as_of,
		)
		apply_state(calendar, state)
		self.db.add(calendar)
		await self.db.flush()
		await self.db.refresh(calendar)
		_logger.info(
			"calendar_created",
			extra={
				"calendar_id": str(calendar.id),
				"crop_type": profile.crop_type,
				"status": state.calendar_status.value,
				"environment_applied": state.generation_conditions.weather_fresh
				or state.generation_conditions.satellite_fresh,
			},
		)
		return to_read(calendar)

	async def get_calendar(self, calendar_id: uuid.UUID) -> CropCalendarRead:
		return to_read(await self._require_calendar(calendar_id))

	async def tick(self, calendar_id: uuid.UUID, as_of: datetime | None = None) -> TickOutcome:
		"""Advance one calendar to ``as_of``; recalculates only on drift.

		A tick that loses the cross-process lease returns the persisted
		calendar unchanged; the lease holder runs the follow-up.
		"""
		as_of = resolve_as_of(as_of)

		async def _job() -> TickOutcome:
			return await self._tick_locked(calendar_id, as_of)

		try:
			return await self.coordinator.run(
				calendar_id,
				_job,
				self.redis_client,
				coalesce=True,
				follow_up=self._follow_up(calendar_id),
			)
		except RecalculationConflict:
			return TickOutcome(
				calendar=await self.get_calendar(calendar_id),
				recalculated=False,
				reasons=["recalculation_in_progress"],
			)

	async def report_observation(
		self,
		calendar_id: uuid.UUID,
		observation: ObservationReport,
	) -> CropCalendarRead:
		as_of = resolve_as_of(observation.as_of)

		async def _job() -> CropCalendarRead:
			return await self._observe_locked(calendar_id, observation, as_of)

		return await self.coordinator.run(
			calendar_id,
			_job,
			self.redis_client,
			follow_up=self._follow_up(calendar_id),
		)

	async def abandon_calendar(self, calendar_id: uuid.UUID) -> CropCalendarRead:
		async def _job() -> CropCalendarRead:
			calendar = await self._require_calendar(calendar_id, for_update=True)
			if calendar.calendar_status == CalendarStatusEnum.completed:
				raise CalendarClosed(f"Calendar {calendar_id} is already completed")
			if calendar.calendar_status != CalendarStatusEnum.abandoned:
				calendar.calendar_status = CalendarStatusEnum.abandoned
				await self._persist(calendar)
				_logger.info("calendar_abandoned", extra={"calendar_id": str(calendar_id)})
			return to_read(calendar)

		return await self.coordinator.run(
			calendar_id,
			_job,
			self.redis_client,
			follow_up=self._follow_up(calendar_id),
		)

	async def open_calendar_ids(self, location_hash: str | None = None) -> list[uuid.UUID]:
		stmt = select(CropCalendar.id).where(
			CropCalendar.calendar_status.in_([CalendarStatusEnum.planned, CalendarStatusEnum.active])
		)
		if location_hash is not None:
			stmt = stmt.where(CropCalendar.location_hash == location_hash)
		rows = await self.db.execute(stmt.order_by(CropCalendar.id))
		return list(rows.scalars().all())

	# ── Guarded sections ────────────────────────────────────────────────────

	async def _tick_locked(self, calendar_id: uuid.UUID, as_of: datetime) -> TickOutcome:
		calendar = await self._require_calendar(calendar_id, for_update=True)
		if calendar.calendar_status in CLOSED_STATUSES:
			return TickOutcome(calendar=to_read(calendar), recalculated=False, reasons=[])
		if calendar.last_tick_at is not None and as_of < calendar.last_tick_at:
			return TickOutcome(calendar=to_read(calendar), recalculated=False, reasons=["stale_tick"])

		profile = await self._profile_for(calendar)
		state = state_of(calendar)
		snapshot = await EnvironmentService(self.db, self.redis_client).get_snapshot(calendar.location_hash, as_of)
		reasons = detect_drift(state.generation_conditions, snapshot, as_of, self.policy)
		if reasons:
			new_state = recalculate_state(
				profile,
				state,
				calendar.planned_area,
				calendar.location_hash,
				snapshot,
				as_of,
				self.policy,
			)
		else:
			new_state = refresh_state(profile, state, calendar.planned_area, snapshot, as_of, self.policy)

		apply_state(calendar, new_state)
		calendar.last_tick_at = as_of
		await self._persist(calendar)
		if reasons:
			_logger.info(
				"calendar_recalculated",
				extra={"calendar_id": str(calendar_id), "reasons": reasons, "as_of": as_of.isoformat()},
			)
		return TickOutcome(calendar=to_read(calendar), recalculated=bool(reasons), reasons=reasons)

	async def _observe_locked(
		self,
		calendar_id: uuid.UUID,
		observation: ObservationReport,
		as_of: datetime,
	) -> CropCalendarRead:
		calendar = await self._require_calendar(calendar_id, for_update=True)
		if calendar.calendar_status in CLOSED_STATUSES:
			raise CalendarClosed(f"Calendar {calendar_id} is {calendar.calendar_status.value}")

		profile = await self._profile_for(calendar)
		snapshot = await EnvironmentService(self.db, self.redis_client).get_snapshot(calendar.location_hash, as_of)
		day = as_of.date()

		if observation.replant_date is not None:
			state = generate_state(
				profile,
				observation.replant_date,
				calendar.planned_area,
				calendar.location_hash,
				snapshot,
				as_of,
				self.policy,
			)
			calendar.last_observed_stage = None
			apply_state(calendar, state)
			calendar.last_tick_at = as_of
			await self._persist(calendar)
			_logger.info(
				"calendar_replanted",
				extra={"calendar_id": str(calendar_id), "planting_date": observation.replant_date.isoformat()},
			)
			return to_read(calendar)

		state = state_of(calendar)
		if day < state.planting_date and (observation.observed_stage or observation.actual_harvest_date):
			raise InvalidObservation(f"observation on {day.isoformat()} precedes planting on {state.planting_date.isoformat()}")

		recalculated = False
		if observation.completed_event_ids:
			schedules, unknown = mark_completed(state.schedules(), observation.completed_event_ids)
			if unknown:
				raise InvalidObservation(f"unknown event ids: {', '.join(unknown)}")
			state = state.model_copy(
				update={
					"fertilization_schedule": schedules.fertilization,
					"irrigation_schedule": schedules.irrigation,
					"pest_management_schedule": schedules.pest_management,
					"activity_calendar": schedules.activity_calendar,
				}
			)

		if observation.observed_stage is not None:
			names = profile.stage_names()
			if observation.observed_stage not in names:
				raise InvalidObservation(
					f"unknown growth stage {observation.observed_stage!r} for {profile.crop_type}"
				)
			expected_index = expected_stage_index(state.growth_timeline, day)
			observed_index = names.index(observation.observed_stage)
			calendar.last_observed_stage = observation.observed_stage
			if stage_mismatch(expected_index, observed_index, self.policy):
				state = recalculate_state(
					profile,
					state,
					calendar.planned_area,
					calendar.location_hash,
					snapshot,
					as_of,
					self.policy,
					observed_stage=observation.observed_stage,
				)
				recalculated = True

		if not recalculated:
			state = refresh_state(profile, state, calendar.planned_area, snapshot, as_of, self.policy)

		if observation.actual_harvest_date is not None:
			if observation.actual_harvest_date < state.planting_date:
				raise InvalidObservation("actual_harvest_date precedes the planting date")
			calendar.actual_harvest_date = observation.actual_harvest_date
			calendar.actual_yield = observation.actual_yield
			state = complete_state(state)

		apply_state(calendar, state)
		await self._persist(calendar)
		_logger.info(
			"calendar_observation_applied",
			extra={
				"calendar_id": str(calendar_id),
				"observed_stage": observation.observed_stage,
				"recalculated": recalculated,
				"status": state.calendar_status.value,
			},
		)
		return to_read(calendar)

	# ── Helpers ─────────────────────────────────────────────────────────────

	def _follow_up(self, calendar_id: uuid.UUID):
		"""Tick at the current time, owed to a contender that lost the lease."""

		async def _job() -> TickOutcome:
			return await self._tick_locked(calendar_id, resolve_as_of(None))

		return _job

	async def _profile_for(self, calendar: CropCalendar) -> CropProfileData:
		return await CropProfileService(self.db).get_crop_profile(calendar.crop_id)

	async def _persist(self, calendar: CropCalendar) -> None:
		await self.db.flush()
		await self.db.refresh(calendar)
		await self.db.commit()

	async def _require_calendar(self, calendar_id: uuid.UUID, for_update: bool = False) -> CropCalendar:
		stmt = select(CropCalendar).where(CropCalendar.id == calendar_id)
		if for_update:
			stmt = stmt.with_for_update()
		row = await self.db.execute(stmt)
		calendar = row.scalar_one_or_none()
		if calendar is None:
			raise NotFound(f"Calendar {calendar_id} not found")
		return calendar
