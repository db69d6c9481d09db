"""Durable batch tick job model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropcal.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from cropcal.models.enums import JobStatusEnum


class TickJob(Base, UUIDPrimaryKeyMixin, TimestampMixin):
	"""Tracks one fan-out tick over all active calendars for a given ``as_of``."""

	__tablename__ = "tick_jobs"
	__table_args__ = (
		Index("ix_tick_jobs_status_as_of", "status", "as_of"),
	)

	as_of: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
	status: Mapped[JobStatusEnum] = mapped_column(
		Enum(
			JobStatusEnum,
			name="job_status",
			create_constraint=False,
			native_enum=True,
		),
		nullable=False,
		default=JobStatusEnum.queued,
		server_default=JobStatusEnum.queued.value,
	)
	processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
	recalculated_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
	failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
	started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
	completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
	error: Mapped[str | None] = mapped_column(String(2048), nullable=True)

	def __repr__(self) -> str:
		return f"<TickJob id={self.id} as_of={self.as_of} status={self.status}>"
