"""Pydantic schemas for crop reference data (the engine's view of a CropProfile)."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cropcal.models.enums import ActivityCategoryEnum


class CostRange(BaseModel):
	min: float = Field(default=0.0, ge=0)
	max: float = Field(default=0.0, ge=0)

	@model_validator(mode="after")
	def _validate_order(self) -> "CostRange":
		if self.min > self.max:
			raise ValueError("cost range min must not exceed max")
		return self


class ToleranceRange(BaseModel):
	minimum: float
	maximum: float
	optimal: float | None = None

	@model_validator(mode="after")
	def _validate_bounds(self) -> "ToleranceRange":
		if self.minimum > self.maximum:
			raise ValueError("tolerance minimum must not exceed maximum")
		return self


class NdviRange(BaseModel):
	minimum: float = Field(ge=-1, le=1)
	maximum: float = Field(ge=-1, le=1)


class CropTolerances(BaseModel):
	temperature: ToleranceRange
	soil_moisture: ToleranceRange
	soil_ph: ToleranceRange


class GrowthStageSpec(BaseModel):
	name: str = Field(min_length=1, max_length=100)
	relative_duration_fraction: float = Field(gt=0, le=1)
	sensitivity: float = Field(default=0.5, ge=0, le=1)
	expected_ndvi: NdviRange | None = None


class TemplateEntry(BaseModel):
	"""One area-normalized template activity, not yet anchored to a date.

	Exactly one of ``stage`` or ``day_offset`` addresses the entry; the
	timeline builder rejects profiles that break this rule.
	"""

	stage: str | None = None
	stage_day: int = Field(default=0, ge=0)
	day_offset: int | None = Field(default=None, ge=0)
	repeat_every_days: int | None = Field(default=None, ge=1)
	action: str = Field(min_length=1, max_length=200)
	product: str | None = None
	quantity: float = Field(default=0.0, ge=0)
	unit: str = "kg"
	unit_cost: CostRange = Field(default_factory=CostRange)
	notes: str | None = None


class CropProfileData(BaseModel):
	"""Immutable, validated crop profile as consumed by the pipeline."""

	model_config = ConfigDict(frozen=True, from_attributes=True)

	crop_id: uuid.UUID
	crop_type: str
	version: int = 1
	growing_period_days: int
	growth_stages: list[GrowthStageSpec]
	fertilization_schedule: list[TemplateEntry] = Field(default_factory=list)
	irrigation_schedule: list[TemplateEntry] = Field(default_factory=list)
	pest_management_schedule: list[TemplateEntry] = Field(default_factory=list)
	tolerances: CropTolerances
	expected_yield_per_hectare: float = Field(ge=0)
	yield_unit: str = "t/ha"
	reference_area_ha: float = Field(default=1.0, gt=0)

	def templates(self) -> dict[ActivityCategoryEnum, list[TemplateEntry]]:
		return {
			ActivityCategoryEnum.fertilization: list(self.fertilization_schedule),
			ActivityCategoryEnum.irrigation: list(self.irrigation_schedule),
			ActivityCategoryEnum.pest_management: list(self.pest_management_schedule),
		}

	def stage_names(self) -> list[str]:
		return [stage.name for stage in self.growth_stages]


class CropProfileRead(BaseModel):
	crop_id: uuid.UUID
	crop_type: str
	version: int
	growing_period_days: int
	growth_stages: list[GrowthStageSpec]
	tolerances: CropTolerances
	expected_yield_per_hectare: float
	yield_unit: str
	reference_area_ha: float
	source: str
	created_at: datetime
