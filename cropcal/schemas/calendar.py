"""Pydantic schemas for crop calendars — engine documents and API payloads.

Schedule events are a closed, tagged set of variants discriminated on
``kind``; every variant shares the ``{event_id, date, status, actions}``
shape so synthesis and adjustment code can treat them uniformly.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from cropcal.models.enums import (
	ActivityCategoryEnum,
	CalendarStatusEnum,
	EventStatusEnum,
	RecommendationPriorityEnum,
	RiskLevelEnum,
)
from cropcal.schemas.crop import CostRange

# ── Timeline ────────────────────────────────────────────────────────────────


class StageWindow(BaseModel):
	stage: str
	start_date: date
	end_date: date

	@property
	def duration_days(self) -> int:
		return (self.end_date - self.start_date).days + 1

	def contains(self, day: date) -> bool:
		return self.start_date <= day <= self.end_date


class GrowthTimeline(BaseModel):
	windows: list[StageWindow]
	expected_harvest_date: date

	@property
	def start_date(self) -> date:
		return self.windows[0].start_date

	@property
	def total_days(self) -> int:
		return (self.expected_harvest_date - self.start_date).days


# ── Schedule events ─────────────────────────────────────────────────────────


class ScheduledAction(BaseModel):
	action: str
	product: str | None = None
	quantity: float = 0.0
	unit: str = "kg"
	unit_cost: CostRange = Field(default_factory=CostRange)
	template_index: int = 0
	notes: str | None = None


class _EventBase(BaseModel):
	event_id: str
	date: date
	stage: str | None = None
	status: EventStatusEnum = EventStatusEnum.planned
	reason: str | None = None
	advisories: list[str] = Field(default_factory=list)
	details: dict[str, Any] = Field(default_factory=dict)
	actions: list[ScheduledAction] = Field(default_factory=list)


class FertilizationEvent(_EventBase):
	kind: Literal["fertilization"] = "fertilization"


class IrrigationEvent(_EventBase):
	kind: Literal["irrigation"] = "irrigation"


class PestManagementEvent(_EventBase):
	kind: Literal["pest_management"] = "pest_management"


class ActivityEvent(_EventBase):
	kind: Literal["activity"] = "activity"


ScheduleEvent = Annotated[
	FertilizationEvent | IrrigationEvent | PestManagementEvent | ActivityEvent,
	Field(discriminator="kind"),
]

EVENT_TYPES: dict[ActivityCategoryEnum, type[_EventBase]] = {
	ActivityCategoryEnum.fertilization: FertilizationEvent,
	ActivityCategoryEnum.irrigation: IrrigationEvent,
	ActivityCategoryEnum.pest_management: PestManagementEvent,
	ActivityCategoryEnum.activity: ActivityEvent,
}

event_list_adapter: TypeAdapter[list[ScheduleEvent]] = TypeAdapter(list[ScheduleEvent])


class Schedules(BaseModel):
	fertilization: list[FertilizationEvent] = Field(default_factory=list)
	irrigation: list[IrrigationEvent] = Field(default_factory=list)
	pest_management: list[PestManagementEvent] = Field(default_factory=list)
	activity_calendar: list[ScheduleEvent] = Field(default_factory=list)
	environment_applied: bool = False

	def by_category(self) -> dict[ActivityCategoryEnum, list[Any]]:
		return {
			ActivityCategoryEnum.fertilization: self.fertilization,
			ActivityCategoryEnum.irrigation: self.irrigation,
			ActivityCategoryEnum.pest_management: self.pest_management,
		}

	def all_events(self) -> list[Any]:
		return [*self.fertilization, *self.irrigation, *self.pest_management]


# ── Risk / cost / recommendations ──────────────────────────────────────────


class RiskFactor(BaseModel):
	code: str
	weight: float
	message: str
	details: dict[str, Any] = Field(default_factory=dict)


class RiskAssessment(BaseModel):
	score: float = Field(ge=0, le=100)
	risk_level: RiskLevelEnum
	confidence_level: float = Field(ge=0, le=1)
	stage: str | None = None
	assessed_on: date
	factors: list[RiskFactor] = Field(default_factory=list)


class CostEstimation(BaseModel):
	min: float
	max: float
	currency: str
	breakdown: dict[str, CostRange] = Field(default_factory=dict)
	event_count: int = 0


class YieldEstimate(BaseModel):
	amount: float = Field(ge=0)
	unit: str
	confidence: float = Field(ge=0, le=1)
	multiplier: float = 1.0
	adjustments: list[str] = Field(default_factory=list)


class HarvestWindow(BaseModel):
	earliest_date: date
	optimal_date: date
	latest_date: date


class Recommendation(BaseModel):
	code: str
	priority: RecommendationPriorityEnum
	category: str
	message: str
	context: dict[str, Any] = Field(default_factory=dict)


class GenerationConditions(BaseModel):
	"""Summary of the snapshot a calendar was (re)generated from."""

	captured_at: datetime
	location_hash: str
	weather_fresh: bool = False
	satellite_fresh: bool = False
	weather_observed_at: datetime | None = None
	satellite_observed_at: datetime | None = None
	temperature_c: float | None = None
	ndvi: float | None = None
	soil_moisture_pct: float | None = None
	soil_temperature_c: float | None = None
	skip_forecast_dates: list[date] = Field(default_factory=list)


# ── Farm context ────────────────────────────────────────────────────────────


class FarmContext(BaseModel):
	latitude: float = Field(ge=-90, le=90)
	longitude: float = Field(ge=-180, le=180)
	total_farm_size: float = Field(gt=0)
	soil_type: str = Field(default="unknown", min_length=1, max_length=100)
	irrigation_type: str = Field(default="unknown", min_length=1, max_length=100)


# ── Pipeline state ──────────────────────────────────────────────────────────


class CalendarState(BaseModel):
	"""Every engine-owned field of a calendar, produced by one pipeline run."""

	planting_date: date
	expected_harvest_date: date
	calendar_status: CalendarStatusEnum
	current_growth_stage: str | None = None
	progress_percentage: float = Field(default=0.0, ge=0, le=100)
	growth_timeline: list[StageWindow]
	fertilization_schedule: list[FertilizationEvent] = Field(default_factory=list)
	irrigation_schedule: list[IrrigationEvent] = Field(default_factory=list)
	pest_management_schedule: list[PestManagementEvent] = Field(default_factory=list)
	activity_calendar: list[ScheduleEvent] = Field(default_factory=list)
	ai_recommendations: list[Recommendation] = Field(default_factory=list)
	risk_assessment: RiskAssessment
	cost_estimation: CostEstimation
	generation_conditions: GenerationConditions
	# None only on rows written before these were computed
	yield_estimate: YieldEstimate | None = None
	harvest_window: HarvestWindow | None = None

	def schedules(self) -> Schedules:
		return Schedules(
			fertilization=self.fertilization_schedule,
			irrigation=self.irrigation_schedule,
			pest_management=self.pest_management_schedule,
			activity_calendar=self.activity_calendar,
		)

	def timeline(self) -> GrowthTimeline:
		return GrowthTimeline(windows=self.growth_timeline, expected_harvest_date=self.expected_harvest_date)


# ── API payloads ────────────────────────────────────────────────────────────


class CalendarCreate(BaseModel):
	user_id: uuid.UUID
	farm_id: uuid.UUID
	crop_id: uuid.UUID
	crop_variety: str | None = Field(default=None, max_length=100)
	planned_area: float = Field(gt=0)
	planting_date: date
	farm: FarmContext
	as_of: datetime | None = None


class ObservationReport(BaseModel):
	observed_stage: str | None = Field(default=None, min_length=1, max_length=100)
	actual_harvest_date: date | None = None
	actual_yield: float | None = Field(default=None, ge=0)
	completed_event_ids: list[str] = Field(default_factory=list)
	replant_date: date | None = None
	as_of: datetime | None = None


class TickRequest(BaseModel):
	as_of: datetime | None = None


class CropCalendarRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	calendar_id: uuid.UUID
	user_id: uuid.UUID
	farm_id: uuid.UUID
	crop_id: uuid.UUID
	crop_variety: str | None = None
	planned_area: float
	planting_date: date
	expected_harvest_date: date
	current_growth_stage: str | None = None
	progress_percentage: float
	calendar_status: CalendarStatusEnum
	location_hash: str
	growth_timeline: list[StageWindow]
	fertilization_schedule: list[FertilizationEvent]
	irrigation_schedule: list[IrrigationEvent]
	pest_management_schedule: list[PestManagementEvent]
	activity_calendar: list[ScheduleEvent]
	ai_recommendations: list[Recommendation]
	risk_assessment: RiskAssessment
	cost_estimation: CostEstimation
	generation_conditions: GenerationConditions
	yield_estimate: YieldEstimate | None = None
	harvest_window: HarvestWindow | None = None
	actual_harvest_date: date | None = None
	actual_yield: float | None = None
	yield_unit: str | None = None
	last_tick_at: datetime | None = None
	created_at: datetime | None = None
	updated_at: datetime | None = None


class TickOutcome(BaseModel):
	calendar: CropCalendarRead
	recalculated: bool = False
	reasons: list[str] = Field(default_factory=list)
