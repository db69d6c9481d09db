"""Environmental snapshot push endpoint."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.database import async_session_factory, get_db
from cropcal.schemas.environment import EnvironmentalSnapshot, SnapshotReceipt
from cropcal.services.calendar_service import CalendarService
from cropcal.services.environment_service import EnvironmentService
from cropcal.services.jobs_service import tick_calendars
from cropcal.services.policy import resolve_as_of

router = APIRouter(prefix="/environment", tags=["environment"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected snapshot storage failure",
	)


async def _tick_location(calendar_ids: list[uuid.UUID], as_of: datetime, redis_client: object | None) -> None:
	await tick_calendars(calendar_ids, as_of, async_session_factory, redis_client)  # type: ignore[arg-type]


@router.post("/snapshots", response_model=SnapshotReceipt, status_code=status.HTTP_202_ACCEPTED)
async def push_snapshot(
	payload: EnvironmentalSnapshot,
	request: Request,
	background_tasks: BackgroundTasks,
	db: AsyncSession = Depends(get_db),
) -> SnapshotReceipt:
	redis_client = getattr(request.app.state, "redis", None)
	try:
		receipt = await EnvironmentService(db, redis_client).store_snapshot(payload)
		calendar_ids = await CalendarService(db, redis_client).open_calendar_ids(payload.location_hash)
		await db.commit()
	except Exception as exc:
		raise _map_error(exc) from exc

	if calendar_ids:
		background_tasks.add_task(_tick_location, calendar_ids, resolve_as_of(None), redis_client)
	return receipt.model_copy(update={"calendars_scheduled": len(calendar_ids)})
