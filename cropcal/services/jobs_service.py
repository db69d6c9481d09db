"""Durable batch tick job orchestration service."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cropcal.config import get_settings
from cropcal.errors import NotFound
from cropcal.models.enums import JobStatusEnum
from cropcal.models.jobs import TickJob
from cropcal.schemas.jobs import JobStatusResponse, TickJobCreateResponse, TickSummary
from cropcal.services.calendar_service import CalendarService

JOB_STATUS_TTL_SECONDS = 60 * 60 * 24

_logger = logging.getLogger("cropcal.jobs")


async def tick_calendars(
	calendar_ids: Sequence[uuid.UUID],
	as_of: datetime,
	session_factory: async_sessionmaker[AsyncSession],
	redis_client: Redis | None = None,
	concurrency: int | None = None,
) -> TickSummary:
	"""Tick each calendar in its own session, at most ``concurrency`` at a time.

	One calendar failing is logged and counted; the rest still run.
	"""
	semaphore = asyncio.Semaphore(concurrency or get_settings().tick_concurrency)

	async def _tick_one(calendar_id: uuid.UUID) -> bool | None:
		async with semaphore:
			async with session_factory() as session:
				try:
					outcome = await CalendarService(session, redis_client).tick(calendar_id, as_of)
					await session.commit()
				except Exception as exc:
					await session.rollback()
					_logger.error(
						"calendar_tick_failed",
						extra={"calendar_id": str(calendar_id), "error": str(exc)},
					)
					return None
				return outcome.recalculated

	results = await asyncio.gather(*(_tick_one(calendar_id) for calendar_id in calendar_ids))
	return TickSummary(
		processed=sum(1 for result in results if result is not None),
		recalculated=sum(1 for result in results if result),
		failed=sum(1 for result in results if result is None),
	)


class JobsService:
	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	async def create_tick_job(self, as_of: datetime) -> TickJobCreateResponse:
		job = TickJob(
			as_of=as_of,
			status=JobStatusEnum.queued,
			processed_count=0,
			recalculated_count=0,
			failed_count=0,
		)
		self.db.add(job)
		await self.db.flush()
		await self.db.refresh(job)
		await self._persist_job_status(job)
		return TickJobCreateResponse(
			job_id=job.id,
			as_of=job.as_of,
			status=job.status.value,
			created_at=job.created_at,
		)

	async def get_job_status(self, job_id: uuid.UUID) -> JobStatusResponse:
		cached = await self._read_cached_status(job_id)
		if cached is not None:
			return cached

		job = await self._require_job(job_id)
		payload = self._to_status_payload(job)
		await self._persist_job_status(job)
		return payload

	async def execute_tick(
		self,
		job_id: uuid.UUID,
		session_factory: async_sessionmaker[AsyncSession],
	) -> JobStatusResponse:
		job = await self._require_job(job_id)
		job.status = JobStatusEnum.running
		job.started_at = datetime.now(UTC)
		job.error = None
		await self.db.flush()
		await self.db.refresh(job)
		await self._persist_job_status(job)

		try:
			calendar_ids = await CalendarService(self.db, self.redis_client).open_calendar_ids()
			summary = await tick_calendars(calendar_ids, job.as_of, session_factory, self.redis_client)
			job.processed_count = summary.processed
			job.recalculated_count = summary.recalculated
			job.failed_count = summary.failed
			job.status = JobStatusEnum.succeeded
			job.completed_at = datetime.now(UTC)
		except Exception as exc:
			job.status = JobStatusEnum.failed
			job.completed_at = datetime.now(UTC)
			job.error = str(exc)[:2048]
			await self.db.flush()
			await self.db.refresh(job)
			await self._persist_job_status(job)
			raise

		await self.db.flush()
		await self.db.refresh(job)
		await self._persist_job_status(job)
		_logger.info(
			"tick_job_completed",
			extra={
				"job_id": str(job.id),
				"processed": summary.processed,
				"recalculated": summary.recalculated,
				"failed": summary.failed,
			},
		)
		return self._to_status_payload(job)

	async def _require_job(self, job_id: uuid.UUID) -> TickJob:
		row = await self.db.execute(select(TickJob).where(TickJob.id == job_id))
		job = row.scalar_one_or_none()
		if job is None:
			raise NotFound(f"Job {job_id} not found")
		return job

	async def _persist_job_status(self, job: TickJob) -> None:
		if self.redis_client is None:
			return
		key = f"job:{job.id}:status"
		payload = self._to_status_payload(job).model_dump(mode="json")
		await self.redis_client.setex(key, JOB_STATUS_TTL_SECONDS, json.dumps(payload))

	async def _read_cached_status(self, job_id: uuid.UUID) -> JobStatusResponse | None:
		if self.redis_client is None:
			return None
		value = await self.redis_client.get(f"job:{job_id}:status")
		if value is None:
			return None
		return JobStatusResponse(**json.loads(value))

	@staticmethod
	def _to_status_payload(job: TickJob) -> JobStatusResponse:
		return JobStatusResponse(
			job_id=job.id,
			as_of=job.as_of,
			status=job.status.value,
			processed_count=job.processed_count,
			recalculated_count=job.recalculated_count,
			failed_count=job.failed_count,
			created_at=job.created_at,
			started_at=job.started_at,
			completed_at=job.completed_at,
			error=job.error,
			updated_at=job.updated_at,
		)
