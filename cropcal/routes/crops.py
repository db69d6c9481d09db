"""Published crop profile routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.database import get_db
from cropcal.errors import InvalidProfile
from cropcal.schemas.crop import CropProfileRead
from cropcal.services.crop_profile_service import CropProfileService

router = APIRouter(prefix="/crops", tags=["crops"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, InvalidProfile):
		return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected crop profile failure",
	)


@router.get("/{crop_id}", response_model=CropProfileRead)
async def get_crop_profile(
	crop_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> CropProfileRead:
	try:
		return await CropProfileService(db).describe(crop_id)
	except Exception as exc:
		raise _map_error(exc) from exc
