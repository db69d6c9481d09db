"""add_yield_outlook

Revision ID: 7c4e2b9f1a08
Revises: 3f9c1d2e7a41
Create Date: 2026-10-19 12:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "7c4e2b9f1a08"
down_revision: str | None = "3f9c1d2e7a41"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
	op.add_column("crop_calendars", sa.Column("yield_estimate", postgresql.JSONB(), nullable=True))
	op.add_column("crop_calendars", sa.Column("harvest_window", postgresql.JSONB(), nullable=True))


def downgrade() -> None:
	op.drop_column("crop_calendars", "harvest_window")
	op.drop_column("crop_calendars", "yield_estimate")
