"""Crop calendar routes — create, read, tick, observe, abandon."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.database import get_db
from cropcal.errors import CalendarClosed, InvalidProfile, RecalculationConflict
from cropcal.schemas.calendar import (
	CalendarCreate,
	CropCalendarRead,
	ObservationReport,
	TickOutcome,
	TickRequest,
)
from cropcal.services.calendar_service import CalendarService

router = APIRouter(prefix="/calendars", tags=["calendars"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, InvalidProfile):
		return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
	if isinstance(exc, (CalendarClosed, RecalculationConflict)):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected calendar service failure",
	)


def _service(request: Request, db: AsyncSession) -> CalendarService:
	return CalendarService(db, getattr(request.app.state, "redis", None))


@router.post("", response_model=CropCalendarRead, status_code=status.HTTP_201_CREATED)
async def create_calendar(
	payload: CalendarCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> CropCalendarRead:
	try:
		return await _service(request, db).create_calendar(payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{calendar_id}", response_model=CropCalendarRead)
async def get_calendar(
	calendar_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> CropCalendarRead:
	try:
		return await _service(request, db).get_calendar(calendar_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{calendar_id}/tick", response_model=TickOutcome)
async def tick_calendar(
	calendar_id: uuid.UUID,
	request: Request,
	payload: TickRequest | None = None,
	db: AsyncSession = Depends(get_db),
) -> TickOutcome:
	as_of = payload.as_of if payload is not None else None
	try:
		return await _service(request, db).tick(calendar_id, as_of)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{calendar_id}/observations", response_model=CropCalendarRead)
async def report_observation(
	calendar_id: uuid.UUID,
	payload: ObservationReport,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> CropCalendarRead:
	try:
		return await _service(request, db).report_observation(calendar_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{calendar_id}/abandon", response_model=CropCalendarRead)
async def abandon_calendar(
	calendar_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> CropCalendarRead:
	try:
		return await _service(request, db).abandon_calendar(calendar_id)
	except Exception as exc:
		raise _map_error(exc) from exc
