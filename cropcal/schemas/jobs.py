"""Pydantic schemas for batch tick job endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class TickJobCreateResponse(BaseModel):
	job_id: uuid.UUID
	as_of: datetime
	status: str
	created_at: datetime


class JobStatusResponse(BaseModel):
	job_id: uuid.UUID
	as_of: datetime
	status: str
	processed_count: int = 0
	recalculated_count: int = 0
	failed_count: int = 0
	created_at: datetime
	started_at: datetime | None = None
	completed_at: datetime | None = None
	error: str | None = None
	updated_at: datetime


class TickSummary(BaseModel):
	processed: int = 0
	recalculated: int = 0
	failed: int = 0
