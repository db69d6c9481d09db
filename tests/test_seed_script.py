from __future__ import annotations

import uuid
from datetime import date

import pytest

from cropcal.errors import InvalidProfile
from cropcal.schemas.crop import CropProfileData
from cropcal.services.timeline_builder import build_growth_timeline
from scripts.seed_crop_profiles import CROP_PROFILES, WHEAT, build_profile_row, seed

from conftest import FakeResult


@pytest.mark.parametrize("payload", CROP_PROFILES, ids=lambda payload: payload["crop_type"])
def test_seed_profiles_anchor_to_a_full_season(payload: dict[str, object]) -> None:
	profile = CropProfileData(crop_id=uuid.uuid4(), **payload)
	timeline = build_growth_timeline(profile, date(2024, 6, 1))

	assert sum(window.duration_days for window in timeline.windows) == profile.growing_period_days
	assert [window.stage for window in timeline.windows] == profile.stage_names()


def test_build_profile_row_marks_seed_source() -> None:
	row = build_profile_row(WHEAT)

	assert row.source == "seed"
	assert row.crop_type == "wheat"
	assert row.id is not None


def test_build_profile_row_rejects_broken_payload() -> None:
	broken = {**WHEAT, "growth_stages": WHEAT["growth_stages"][:2]}
	with pytest.raises(InvalidProfile):
		build_profile_row(broken)


async def test_seed_skips_existing_crop_types(fake_db_session) -> None:
	fake_db_session.execute.side_effect = [FakeResult(uuid.uuid4()), FakeResult(None)]

	created = await seed(fake_db_session)

	assert created == ["rice"]
	assert fake_db_session.add.call_count == 1
	fake_db_session.commit.assert_awaited_once()
