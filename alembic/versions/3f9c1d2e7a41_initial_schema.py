"""initial_schema

Revision ID: 3f9c1d2e7a41
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the crop profile, crop calendar, weather / satellite snapshot and
tick job tables plus the ``calendar_status`` and ``job_status`` enum types.
Expects the uuid-ossp extension; it is created here when missing.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9c1d2e7a41"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# ── Enum type names (PostgreSQL CREATE TYPE) ────────────────────────────────
ENUM_CALENDAR_STATUS = postgresql.ENUM(
    "planned",
    "active",
    "completed",
    "abandoned",
    name="calendar_status",
    create_type=False,
)
ENUM_JOB_STATUS = postgresql.ENUM(
    "queued",
    "running",
    "succeeded",
    "failed",
    name="job_status",
    create_type=False,
)


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("uuid_generate_v4()"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _snapshot_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("location_hash", sa.String(64), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "ingested_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. Create enum types ────────────────────────────────────────────
    ENUM_CALENDAR_STATUS.create(op.get_bind(), checkfirst=True)
    ENUM_JOB_STATUS.create(op.get_bind(), checkfirst=True)

    # ── 2. Reference data ───────────────────────────────────────────────
    op.create_table(
        "crop_profiles",
        _uuid_pk(),
        sa.Column("crop_type", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("growing_period_days", sa.Integer(), nullable=False),
        sa.Column("growth_stages", postgresql.JSONB(), nullable=False),
        sa.Column(
            "fertilization_schedule",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "irrigation_schedule",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "pest_management_schedule",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("tolerances", postgresql.JSONB(), nullable=False),
        sa.Column("expected_yield_per_hectare", sa.Float(), nullable=False),
        sa.Column("yield_unit", sa.String(20), server_default=sa.text("'t/ha'"), nullable=False),
        sa.Column("reference_area_ha", sa.Float(), server_default=sa.text("1.0"), nullable=False),
        sa.Column("source", sa.String(100), server_default=sa.text("'FAO'"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("crop_type"),
    )

    # ── 3. Calendars ────────────────────────────────────────────────────
    op.create_table(
        "crop_calendars",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("farm_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("crop_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("crop_variety", sa.String(100), nullable=True),
        sa.Column("profile_version", sa.Integer(), nullable=False),
        sa.Column("planned_area", sa.Float(), nullable=False),
        sa.Column("planting_date", sa.Date(), nullable=False),
        sa.Column("expected_harvest_date", sa.Date(), nullable=False),
        sa.Column("current_growth_stage", sa.String(100), nullable=True),
        sa.Column("progress_percentage", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("location_hash", sa.String(64), nullable=False),
        sa.Column("farm_context", postgresql.JSONB(), nullable=False),
        sa.Column("growth_timeline", postgresql.JSONB(), nullable=False),
        sa.Column("fertilization_schedule", postgresql.JSONB(), nullable=False),
        sa.Column("irrigation_schedule", postgresql.JSONB(), nullable=False),
        sa.Column("pest_management_schedule", postgresql.JSONB(), nullable=False),
        sa.Column("activity_calendar", postgresql.JSONB(), nullable=False),
        sa.Column("ai_recommendations", postgresql.JSONB(), nullable=False),
        sa.Column("risk_assessment", postgresql.JSONB(), nullable=False),
        sa.Column("cost_estimation", postgresql.JSONB(), nullable=False),
        sa.Column("generation_conditions", postgresql.JSONB(), nullable=False),
        sa.Column(
            "calendar_status",
            ENUM_CALENDAR_STATUS,
            server_default=sa.text("'planned'"),
            nullable=False,
        ),
        sa.Column("last_observed_stage", sa.String(100), nullable=True),
        sa.Column("last_tick_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_harvest_date", sa.Date(), nullable=True),
        sa.Column("actual_yield", sa.Float(), nullable=True),
        sa.Column("yield_unit", sa.String(20), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["crop_id"], ["crop_profiles.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crop_calendars_status", "crop_calendars", ["calendar_status"])
    op.create_index(
        "ix_crop_calendars_location_status",
        "crop_calendars",
        ["location_hash", "calendar_status"],
    )
    op.create_index("ix_crop_calendars_user_id", "crop_calendars", ["user_id"])

    # ── 4. Environmental snapshots ──────────────────────────────────────
    op.create_table(
        "weather_data",
        *_snapshot_columns(),
        sa.Column("current_temperature_c", sa.Float(), nullable=True),
        sa.Column("humidity_pct", sa.Float(), nullable=True),
        sa.Column("precipitation_last_24h_mm", sa.Float(), nullable=True),
        sa.Column("wind_speed_kmh", sa.Float(), nullable=True),
        sa.Column(
            "forecast_data",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "data_source",
            sa.String(50),
            server_default=sa.text("'provider'"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_weather_data_location_observed",
        "weather_data",
        ["location_hash", "observed_at"],
    )

    op.create_table(
        "satellite_data",
        *_snapshot_columns(),
        sa.Column("ndvi", sa.Float(), nullable=True),
        sa.Column("evi", sa.Float(), nullable=True),
        sa.Column("soil_moisture_pct", sa.Float(), nullable=True),
        sa.Column("soil_temperature_c", sa.Float(), nullable=True),
        sa.Column("soil_ph", sa.Float(), nullable=True),
        sa.Column("cloud_cover_pct", sa.Float(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column(
            "satellite_source",
            sa.String(100),
            server_default=sa.text("'sentinel-2'"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_satellite_data_location_observed",
        "satellite_data",
        ["location_hash", "observed_at"],
    )

    # ── 5. Batch tick jobs ──────────────────────────────────────────────
    op.create_table(
        "tick_jobs",
        _uuid_pk(),
        sa.Column("as_of", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", ENUM_JOB_STATUS, server_default=sa.text("'queued'"), nullable=False),
        sa.Column("processed_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("recalculated_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("failed_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.String(length=2048), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tick_jobs_status_as_of", "tick_jobs", ["status", "as_of"])


def downgrade() -> None:
    # ── Drop tables in reverse dependency order ─────────────────────────
    op.drop_index("ix_tick_jobs_status_as_of", table_name="tick_jobs")
    op.drop_table("tick_jobs")
    op.drop_index("ix_satellite_data_location_observed", table_name="satellite_data")
    op.drop_table("satellite_data")
    op.drop_index("ix_weather_data_location_observed", table_name="weather_data")
    op.drop_table("weather_data")
    op.drop_index("ix_crop_calendars_user_id", table_name="crop_calendars")
    op.drop_index("ix_crop_calendars_location_status", table_name="crop_calendars")
    op.drop_index("ix_crop_calendars_status", table_name="crop_calendars")
    op.drop_table("crop_calendars")
    op.drop_table("crop_profiles")

    # ── Drop enum types ─────────────────────────────────────────────────
    ENUM_JOB_STATUS.drop(op.get_bind(), checkfirst=True)
    ENUM_CALENDAR_STATUS.drop(op.get_bind(), checkfirst=True)
