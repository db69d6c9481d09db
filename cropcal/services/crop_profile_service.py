"""Read-only access to published crop profiles."""

from __future__ import annotations

import uuid

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.errors import InvalidProfile, NotFound
from cropcal.models.crops import CropProfile
from cropcal.schemas.crop import CropProfileData, CropProfileRead
from cropcal.services.timeline_builder import validate_profile


def to_profile_data(row: CropProfile) -> CropProfileData:
	try:
		profile = CropProfileData(
			crop_id=row.id,
			crop_type=row.crop_type,
			version=row.version,
			growing_period_days=row.growing_period_days,
			growth_stages=row.growth_stages,
			fertilization_schedule=row.fertilization_schedule,
			irrigation_schedule=row.irrigation_schedule,
			pest_management_schedule=row.pest_management_schedule,
			tolerances=row.tolerances,
			expected_yield_per_hectare=row.expected_yield_per_hectare,
			yield_unit=row.yield_unit,
			reference_area_ha=row.reference_area_ha,
		)
	except ValidationError as exc:
		raise InvalidProfile(f"crop profile {row.crop_type!r} is malformed: {exc.error_count()} error(s)") from exc
	validate_profile(profile)
	return profile


class CropProfileService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def get_crop_profile(self, crop_id: uuid.UUID) -> CropProfileData:
		return to_profile_data(await self._require_profile(crop_id))

	async def describe(self, crop_id: uuid.UUID) -> CropProfileRead:
		row = await self._require_profile(crop_id)
		profile = to_profile_data(row)
		return CropProfileRead(
			crop_id=profile.crop_id,
			crop_type=profile.crop_type,
			version=profile.version,
			growing_period_days=profile.growing_period_days,
			growth_stages=profile.growth_stages,
			tolerances=profile.tolerances,
			expected_yield_per_hectare=profile.expected_yield_per_hectare,
			yield_unit=profile.yield_unit,
			reference_area_ha=profile.reference_area_ha,
			source=row.source,
			created_at=row.created_at,
		)

	async def _require_profile(self, crop_id: uuid.UUID) -> CropProfile:
		row = await self.db.execute(select(CropProfile).where(CropProfile.id == crop_id))
		profile = row.scalar_one_or_none()
		if profile is None:
			raise NotFound(f"Crop profile {crop_id} not found")
		return profile
