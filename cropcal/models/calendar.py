"""CropCalendar ORM model — one row per planting decision.

Timeline, schedules, risk, cost and recommendations are JSONB documents
serialized from the pydantic models in ``cropcal.schemas.calendar``; the
calendar service always rewrites them together so a row never mixes outputs
of two different pipeline runs.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Enum, Float, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from cropcal.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from cropcal.models.enums import CalendarStatusEnum


class CropCalendar(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Dated crop calendar — the engine's primary, mutable output.

    ``user_id`` and ``farm_id`` reference records owned by other services and
    therefore carry no foreign keys here.
    """

    __tablename__ = "crop_calendars"
    __table_args__ = (
        Index("ix_crop_calendars_status", "calendar_status"),
        Index("ix_crop_calendars_location_status", "location_hash", "calendar_status"),
        Index("ix_crop_calendars_user_id", "user_id"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    farm_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    crop_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crop_profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    crop_variety: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_version: Mapped[int] = mapped_column(Integer, nullable=False)
    planned_area: Mapped[float] = mapped_column(Float, nullable=False)
    planting_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_harvest_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_growth_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    progress_percentage: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default="0"
    )

    location_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    farm_context: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    growth_timeline: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    fertilization_schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    irrigation_schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    pest_management_schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    activity_calendar: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    ai_recommendations: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    risk_assessment: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    cost_estimation: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    generation_conditions: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    yield_estimate: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    harvest_window: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    calendar_status: Mapped[CalendarStatusEnum] = mapped_column(
        Enum(
            CalendarStatusEnum,
            name="calendar_status",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=CalendarStatusEnum.planned,
        server_default=CalendarStatusEnum.planned.value,
    )
    last_observed_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_tick_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_harvest_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_yield: Mapped[float | None] = mapped_column(Float, nullable=True)
    yield_unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<CropCalendar id={self.id} crop={self.crop_id} "
            f"status={self.calendar_status} stage={self.current_growth_stage!r}>"
        )
