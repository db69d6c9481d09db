"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.  Application code can also do::

    from cropcal.models import CropCalendar, CropProfile, ...
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from cropcal.models.base import (
    Base,
    ExpiringSnapshotMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

# ── Calendars ───────────────────────────────────────────────────────────────
from cropcal.models.calendar import CropCalendar

# ── Crop reference ──────────────────────────────────────────────────────────
from cropcal.models.crops import CropProfile

# ── Environmental snapshots ────────────────────────────────────────────────
from cropcal.models.environment import SatelliteData, WeatherData

# ── Enums ───────────────────────────────────────────────────────────────────
from cropcal.models.enums import (
    ActivityCategoryEnum,
    CalendarStatusEnum,
    EventStatusEnum,
    JobStatusEnum,
    RecommendationPriorityEnum,
    RiskLevelEnum,
)

# ── Jobs ────────────────────────────────────────────────────────────────────
from cropcal.models.jobs import TickJob

__all__ = [
    "ActivityCategoryEnum",
    # Base & mixins
    "Base",
    "CalendarStatusEnum",
    # Calendars
    "CropCalendar",
    # Crop reference
    "CropProfile",
    "EventStatusEnum",
    "ExpiringSnapshotMixin",
    "JobStatusEnum",
    "RecommendationPriorityEnum",
    "RiskLevelEnum",
    # Snapshots
    "SatelliteData",
    # Jobs
    "TickJob",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "WeatherData",
]
