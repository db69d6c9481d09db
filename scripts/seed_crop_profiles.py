"""Seed published crop profiles (wheat, rice) into the database.

Usage::

    python -m scripts.seed_crop_profiles

Profiles that already exist (by ``crop_type``) are left untouched; a changed
profile must be published as a new ``version`` instead.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropcal.database import async_session_factory, engine
from cropcal.models.crops import CropProfile
from cropcal.schemas.crop import CropProfileData
from cropcal.services.timeline_builder import validate_profile

logger = logging.getLogger("cropcal.seed")

WHEAT: dict[str, Any] = {
	"crop_type": "wheat",
	"growing_period_days": 120,
	"growth_stages": [
		{"name": "germination", "relative_duration_fraction": 0.10, "sensitivity": 0.4,
			"expected_ndvi": {"minimum": 0.1, "maximum": 0.3}},
		{"name": "tillering", "relative_duration_fraction": 0.25, "sensitivity": 0.6,
			"expected_ndvi": {"minimum": 0.3, "maximum": 0.6}},
		{"name": "heading", "relative_duration_fraction": 0.25, "sensitivity": 0.9,
			"expected_ndvi": {"minimum": 0.5, "maximum": 0.85}},
		{"name": "grain_filling", "relative_duration_fraction": 0.25, "sensitivity": 0.7,
			"expected_ndvi": {"minimum": 0.4, "maximum": 0.75}},
		{"name": "maturity", "relative_duration_fraction": 0.15, "sensitivity": 0.2,
			"expected_ndvi": {"minimum": 0.2, "maximum": 0.5}},
	],
	"fertilization_schedule": [
		{"day_offset": 0, "action": "Base fertilizer", "product": "NPK 10-26-26", "quantity": 50.0,
			"unit": "kg", "unit_cost": {"min": 28.0, "max": 34.0},
			"notes": "Apply and incorporate into soil before planting"},
		{"stage": "tillering", "stage_day": 5, "action": "Side dressing", "product": "Urea (46-0-0)",
			"quantity": 25.0, "unit": "kg", "unit_cost": {"min": 6.0, "max": 8.0},
			"notes": "Apply between rows and incorporate lightly"},
		{"stage": "heading", "stage_day": 3, "action": "Foliar feed", "product": "Micronutrient mix",
			"quantity": 2.0, "unit": "kg", "unit_cost": {"min": 180.0, "max": 240.0},
			"notes": "Apply during cool morning hours"},
	],
	"irrigation_schedule": [
		{"day_offset": 0, "repeat_every_days": 10, "action": "Surface irrigation", "quantity": 50.0,
			"unit": "mm", "unit_cost": {"min": 4.0, "max": 6.0},
			"notes": "Early morning (6-8 AM) or evening (6-8 PM)"},
	],
	"pest_management_schedule": [
		{"stage": "tillering", "stage_day": 10, "action": "Aphid scouting and spray", "product": "Imidacloprid 17.8 SL",
			"quantity": 0.1, "unit": "l", "unit_cost": {"min": 900.0, "max": 1200.0}},
		{"stage": "heading", "stage_day": 7, "action": "Rust prevention spray", "product": "Propiconazole 25 EC",
			"quantity": 0.5, "unit": "l", "unit_cost": {"min": 700.0, "max": 950.0}},
	],
	"tolerances": {
		"temperature": {"minimum": 3.0, "maximum": 32.0, "optimal": 20.0},
		"soil_moisture": {"minimum": 25.0, "maximum": 70.0, "optimal": 45.0},
		"soil_ph": {"minimum": 6.0, "maximum": 7.5, "optimal": 6.5},
	},
	"expected_yield_per_hectare": 3.5,
	"yield_unit": "t/ha",
	"reference_area_ha": 1.0,
}

RICE: dict[str, Any] = {
	"crop_type": "rice",
	"growing_period_days": 130,
	"growth_stages": [
		{"name": "nursery", "relative_duration_fraction": 0.20, "sensitivity": 0.3},
		{"name": "tillering", "relative_duration_fraction": 0.25, "sensitivity": 0.5},
		{"name": "panicle_initiation", "relative_duration_fraction": 0.20, "sensitivity": 0.8},
		{"name": "flowering", "relative_duration_fraction": 0.15, "sensitivity": 1.0},
		{"name": "ripening", "relative_duration_fraction": 0.20, "sensitivity": 0.3},
	],
	"fertilization_schedule": [
		{"stage": "tillering", "action": "Basal dose", "product": "DAP (18-46-0)", "quantity": 100.0,
			"unit": "kg", "unit_cost": {"min": 27.0, "max": 30.0}},
		{"stage": "panicle_initiation", "action": "Top dressing", "product": "Urea (46-0-0)", "quantity": 65.0,
			"unit": "kg", "unit_cost": {"min": 6.0, "max": 8.0}},
	],
	"irrigation_schedule": [
		{"stage": "tillering", "repeat_every_days": 5, "action": "Maintain standing water", "quantity": 50.0,
			"unit": "mm", "unit_cost": {"min": 4.0, "max": 6.0}},
		{"stage": "flowering", "repeat_every_days": 4, "action": "Maintain standing water", "quantity": 50.0,
			"unit": "mm", "unit_cost": {"min": 4.0, "max": 6.0}},
	],
	"pest_management_schedule": [
		{"stage": "panicle_initiation", "stage_day": 5, "action": "Stem borer control", "product": "Chlorantraniliprole 0.4 GR",
			"quantity": 10.0, "unit": "kg", "unit_cost": {"min": 110.0, "max": 140.0}},
	],
	"tolerances": {
		"temperature": {"minimum": 16.0, "maximum": 35.0, "optimal": 27.0},
		"soil_moisture": {"minimum": 50.0, "maximum": 100.0, "optimal": 80.0},
		"soil_ph": {"minimum": 5.5, "maximum": 7.0, "optimal": 6.2},
	},
	"expected_yield_per_hectare": 4.5,
	"yield_unit": "t/ha",
	"reference_area_ha": 1.0,
}

CROP_PROFILES: list[dict[str, Any]] = [WHEAT, RICE]


def build_profile_row(payload: dict[str, Any]) -> CropProfile:
	"""Validate a profile payload the way the engine will read it, then build the row."""
	crop_id = uuid.uuid4()
	validate_profile(CropProfileData(crop_id=crop_id, **payload))
	return CropProfile(id=crop_id, source="seed", **payload)


async def seed(session: AsyncSession, profiles: list[dict[str, Any]] | None = None) -> list[str]:
	created: list[str] = []
	for payload in profiles or CROP_PROFILES:
		existing = await session.execute(
			select(CropProfile.id).where(CropProfile.crop_type == payload["crop_type"])
		)
		if existing.scalar_one_or_none() is not None:
			logger.info("crop_profile_exists", extra={"crop_type": payload["crop_type"]})
			continue
		session.add(build_profile_row(payload))
		created.append(payload["crop_type"])
	await session.commit()
	return created


async def main() -> None:
	logging.basicConfig(level=logging.INFO)
	async with async_session_factory() as session:
		created = await seed(session)
	logger.info("crop_profiles_seeded", extra={"created": created})
	await engine.dispose()


if __name__ == "__main__":
	asyncio.run(main())
