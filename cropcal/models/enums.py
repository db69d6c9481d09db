"""PostgreSQL-backed enum types for ORM models and engine payloads.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM where it types
a column; the rest travel inside JSONB payloads and pydantic schemas.
"""

from enum import StrEnum

# ── Calendar lifecycle ──────────────────────────────────────────────────────


class CalendarStatusEnum(StrEnum):
    """Lifecycle state of a crop calendar."""

    planned = "planned"
    active = "active"
    completed = "completed"
    abandoned = "abandoned"


# ── Schedule events ─────────────────────────────────────────────────────────


class ActivityCategoryEnum(StrEnum):
    """Closed set of event kinds on a calendar."""

    fertilization = "fertilization"
    irrigation = "irrigation"
    pest_management = "pest_management"
    activity = "activity"


class EventStatusEnum(StrEnum):
    """Status of a single dated event."""

    planned = "planned"
    skipped = "skipped"
    completed = "completed"


# ── Risk ────────────────────────────────────────────────────────────────────


class RiskLevelEnum(StrEnum):
    """Discrete risk level derived from the health score."""

    low = "low"
    medium = "medium"
    high = "high"


class RecommendationPriorityEnum(StrEnum):
    high = "high"
    medium = "medium"
    low = "low"


# ── Jobs ────────────────────────────────────────────────────────────────────


class JobStatusEnum(StrEnum):
    """Lifecycle of a durable batch tick job."""

    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
