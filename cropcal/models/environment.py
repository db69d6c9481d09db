"""Weather and satellite snapshot ORM models.

Both tables are append-only provider snapshots keyed by ``location_hash``
(via ``ExpiringSnapshotMixin``) with a composite (location, observed_at)
index for "newest reading as of" lookups.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Float, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cropcal.models.base import Base, ExpiringSnapshotMixin


class WeatherData(Base, ExpiringSnapshotMixin):
    """Current weather conditions plus a daily forecast for one location."""

    __tablename__ = "weather_data"
    __table_args__ = (
        Index("ix_weather_data_location_observed", "location_hash", "observed_at"),
    )

    current_temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    precipitation_last_24h_mm: Mapped[float | None] = mapped_column(Float, nullable=True)
    wind_speed_kmh: Mapped[float | None] = mapped_column(Float, nullable=True)
    forecast_data: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    data_source: Mapped[str] = mapped_column(
        String(50), nullable=False, default="provider", server_default="provider"
    )

    def __repr__(self) -> str:
        return (
            f"<WeatherData id={self.id} location={self.location_hash[:12]} "
            f"observed={self.observed_at}>"
        )


class SatelliteData(Base, ExpiringSnapshotMixin):
    """Satellite-derived vegetation and soil signals for one location."""

    __tablename__ = "satellite_data"
    __table_args__ = (
        Index("ix_satellite_data_location_observed", "location_hash", "observed_at"),
    )

    ndvi: Mapped[float | None] = mapped_column(Float, nullable=True)
    evi: Mapped[float | None] = mapped_column(Float, nullable=True)
    soil_moisture_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    soil_temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    soil_ph: Mapped[float | None] = mapped_column(Float, nullable=True)
    cloud_cover_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    satellite_source: Mapped[str] = mapped_column(
        String(100), nullable=False, default="sentinel-2", server_default="sentinel-2"
    )

    def __repr__(self) -> str:
        return (
            f"<SatelliteData id={self.id} location={self.location_hash[:12]} "
            f"observed={self.observed_at}>"
        )
