"""CropProfile ORM model — agronomic reference table.

``growth_stages`` (JSONB) is the ordered stage list:

    [
        {
            "name": "germination",
            "relative_duration_fraction": 0.15,
            "sensitivity": 0.4,
            "expected_ndvi": {"minimum": 0.1, "maximum": 0.3}
        },
        ...
    ]

The three template schedules hold entries addressed either by ``stage``
(+ ``stage_day``) or by ``day_offset`` from planting; quantities and costs are
expressed per ``reference_area_ha``.  Rows are immutable once published — a
change is a new ``version``.
"""

from __future__ import annotations

from sqlalchemy import Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cropcal.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class CropProfile(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Agronomic reference: stage proportions, templates, tolerances, yield."""

    __tablename__ = "crop_profiles"

    crop_type: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
    growing_period_days: Mapped[int] = mapped_column(Integer, nullable=False)
    growth_stages: Mapped[list] = mapped_column(JSONB, nullable=False)
    fertilization_schedule: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    irrigation_schedule: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    pest_management_schedule: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    tolerances: Mapped[dict] = mapped_column(JSONB, nullable=False)
    expected_yield_per_hectare: Mapped[float] = mapped_column(
        Float, nullable=False
    )
    yield_unit: Mapped[str] = mapped_column(
        String(20), nullable=False, default="t/ha", server_default="t/ha"
    )
    reference_area_ha: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, server_default="1.0"
    )
    source: Mapped[str] = mapped_column(
        String(100), nullable=False, default="FAO", server_default="FAO"
    )

    def __repr__(self) -> str:
        return (
            f"<CropProfile id={self.id} crop={self.crop_type!r} "
            f"version={self.version}>"
        )
