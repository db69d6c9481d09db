"""Keyed recalculation coordinator.

Inside one process at most one job per calendar is in flight.  Ticks that
arrive meanwhile collapse into a single follow-up tick (the latest request's
job runs and every waiting tick gets its result); observation and lifecycle
jobs are queued and run one by one in arrival order, each caller receiving
its own job's result.  Across processes a Redis lease guards the same key: a
contender leaves a pending flag and gets ``RecalculationConflict``; the holder
then runs the ``follow_up`` job once before releasing.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from redis.asyncio import Redis

from cropcal.config import get_settings
from cropcal.errors import RecalculationConflict

_logger = logging.getLogger("cropcal.recalculation")

Job = Callable[[], Awaitable[Any]]


@dataclass
class _Request:
	job: Job
	future: asyncio.Future[Any]
	follow_up: Job | None = None
	coalesce: bool = False
	waiting: int = 1


@dataclass
class _Slot:
	queue: deque[_Request] = field(default_factory=deque)
	task: asyncio.Task[None] | None = None


class RecalculationCoordinator:
	def __init__(self, lease_seconds: int = 120) -> None:
		self.lease_seconds = lease_seconds
		self._slots: dict[uuid.UUID, _Slot] = {}

	def in_flight(self, calendar_id: uuid.UUID) -> bool:
		return calendar_id in self._slots

	async def run(
		self,
		calendar_id: uuid.UUID,
		job: Job,
		redis_client: Redis | None = None,
		*,
		coalesce: bool = False,
		follow_up: Job | None = None,
	) -> Any:
		"""Run ``job`` for ``calendar_id`` once the calendar is free.

		With ``coalesce`` the request merges into a queued coalescable request
		at the tail of the queue, replacing its job.  ``follow_up`` is what the
		lease holder runs for a cross-process contender; without one the
		pending flag is cleared and nothing extra runs.
		"""
		loop = asyncio.get_running_loop()
		slot = self._slots.get(calendar_id)
		if slot is None:
			slot = _Slot()
			self._slots[calendar_id] = slot
			request = _Request(job=job, future=loop.create_future(), follow_up=follow_up, coalesce=coalesce)
			slot.queue.append(request)
			slot.task = asyncio.create_task(self._drain(calendar_id, slot, redis_client))
			return await asyncio.shield(request.future)

		# queue[0] is already running
		tail = slot.queue[-1] if len(slot.queue) > 1 else None
		if coalesce and tail is not None and tail.coalesce:
			tail.job = job
			tail.follow_up = follow_up
			tail.waiting += 1
			_logger.info(
				"recalculation_coalesced",
				extra={"calendar_id": str(calendar_id), "waiting": tail.waiting},
			)
			return await asyncio.shield(tail.future)

		request = _Request(job=job, future=loop.create_future(), follow_up=follow_up, coalesce=coalesce)
		slot.queue.append(request)
		_logger.info(
			"recalculation_queued",
			extra={"calendar_id": str(calendar_id), "queued": len(slot.queue)},
		)
		return await asyncio.shield(request.future)

	async def _drain(self, calendar_id: uuid.UUID, slot: _Slot, redis_client: Redis | None) -> None:
		try:
			while slot.queue:
				request = slot.queue[0]
				try:
					result = await self._execute(calendar_id, request, redis_client)
				except Exception as exc:
					if not request.future.done():
						request.future.set_exception(exc)
				else:
					if not request.future.done():
						request.future.set_result(result)
				finally:
					slot.queue.popleft()
		finally:
			self._slots.pop(calendar_id, None)

	async def _execute(self, calendar_id: uuid.UUID, request: _Request, redis_client: Redis | None) -> Any:
		if redis_client is None:
			return await request.job()

		lease_key = f"calendar:{calendar_id}:recalc"
		pending_key = f"{lease_key}:pending"
		token = uuid.uuid4().hex
		acquired = await redis_client.set(lease_key, token, nx=True, ex=self.lease_seconds)
		if not acquired:
			await redis_client.set(pending_key, "1", ex=self.lease_seconds)
			_logger.info("recalculation_lease_busy", extra={"calendar_id": str(calendar_id)})
			raise RecalculationConflict(calendar_id)

		try:
			result = await request.job()
			if await redis_client.getdel(pending_key) and request.follow_up is not None:
				_logger.info("recalculation_follow_up", extra={"calendar_id": str(calendar_id)})
				try:
					await request.follow_up()
				except Exception:
					_logger.exception("recalculation_follow_up_failed", extra={"calendar_id": str(calendar_id)})
			return result
		finally:
			if await redis_client.get(lease_key) == token:
				await redis_client.delete(lease_key)


@lru_cache
def get_recalculation_coordinator() -> RecalculationCoordinator:
	return RecalculationCoordinator(lease_seconds=get_settings().recalculation_lease_seconds)
