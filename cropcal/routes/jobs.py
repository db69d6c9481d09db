"""Background batch tick job routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.database import async_session_factory, get_db
from cropcal.schemas.calendar import TickRequest
from cropcal.schemas.jobs import JobStatusResponse, TickJobCreateResponse
from cropcal.services.jobs_service import JobsService
from cropcal.services.policy import resolve_as_of

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="job failure")


async def _run_tick_job(job_id: uuid.UUID, redis_client: object | None) -> None:
	async with async_session_factory() as session:
		service = JobsService(session, redis_client)  # type: ignore[arg-type]
		try:
			await service.execute_tick(job_id, async_session_factory)
			await session.commit()
		except Exception:
			try:
				await session.commit()
			except Exception:
				await session.rollback()


@router.post("/tick", response_model=TickJobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_tick_job(
	request: Request,
	background_tasks: BackgroundTasks,
	payload: TickRequest | None = None,
	db: AsyncSession = Depends(get_db),
) -> TickJobCreateResponse:
	redis_client = getattr(request.app.state, "redis", None)
	service = JobsService(db, redis_client)
	try:
		response = await service.create_tick_job(resolve_as_of(payload.as_of if payload else None))
		await db.commit()
	except Exception as exc:
		raise _map_error(exc) from exc

	background_tasks.add_task(_run_tick_job, response.job_id, redis_client)
	return response


@router.get("/{job_id}/status", response_model=JobStatusResponse)
async def get_job_status(
	job_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> JobStatusResponse:
	service = JobsService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.get_job_status(job_id)
	except Exception as exc:
		raise _map_error(exc) from exc
