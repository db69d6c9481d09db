"""Stage timeline builder — anchors a crop's stage proportions to real dates.

Stage durations are ``round(fraction × growing_period_days)`` (half-up) for
every stage but the last, which absorbs the rounding remainder; windows are
inclusive ``[start_date, end_date]`` ranges laid end to end from the planting
date, so they are contiguous, non-overlapping and cover exactly
``growing_period_days`` days.  Harvest is expected the day after the final
window closes.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from cropcal.errors import InvalidPlantingDate, InvalidProfile
from cropcal.schemas.calendar import GrowthTimeline, StageWindow
from cropcal.schemas.crop import CropProfileData
from cropcal.services.policy import EnginePolicy

ONE_DAY = timedelta(days=1)


def _round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def validate_profile(profile: CropProfileData, policy: EnginePolicy | None = None) -> None:
	"""Raise ``InvalidProfile`` unless the profile can be anchored to a calendar."""
	policy = policy or EnginePolicy()
	if profile.growing_period_days <= 0:
		raise InvalidProfile(f"growing_period_days must be positive, got {profile.growing_period_days}")
	if not profile.growth_stages:
		raise InvalidProfile(f"crop profile {profile.crop_type!r} defines no growth stages")

	names = profile.stage_names()
	if len(set(names)) != len(names):
		raise InvalidProfile(f"crop profile {profile.crop_type!r} repeats a growth stage name")

	total = sum(stage.relative_duration_fraction for stage in profile.growth_stages)
	if abs(total - 1.0) > policy.profile_fraction_tolerance:
		raise InvalidProfile(f"stage duration fractions sum to {total:.4f}, expected 1.0")

	known = set(names)
	for category, entries in profile.templates().items():
		for idx, entry in enumerate(entries):
			label = f"{category.value}[{idx}]"
			if (entry.stage is None) == (entry.day_offset is None):
				raise InvalidProfile(f"{label} must be addressed by exactly one of stage or day_offset")
			if entry.stage is not None and entry.stage not in known:
				raise InvalidProfile(f"{label} references unknown stage {entry.stage!r}")
			if entry.day_offset is not None and entry.day_offset >= profile.growing_period_days:
				raise InvalidProfile(f"{label} day_offset {entry.day_offset} is outside the growing period")

	stage_durations(profile)


def stage_durations(profile: CropProfileData) -> list[int]:
	"""Whole-day duration per stage; the final stage takes the remainder."""
	period = profile.growing_period_days
	durations: list[int] = []
	for stage in profile.growth_stages[:-1]:
		durations.append(max(1, _round_half_up(stage.relative_duration_fraction * period)))

	remainder = period - sum(durations)
	if remainder < 1:
		raise InvalidProfile(
			f"growing period of {period} days is too short for {len(profile.growth_stages)} stages"
		)
	durations.append(remainder)
	return durations


def build_growth_timeline(
	profile: CropProfileData,
	planting_date: date,
	*,
	as_of: date | None = None,
	policy: EnginePolicy | None = None,
) -> GrowthTimeline:
	"""Lay the profile's stages out from ``planting_date``.

	When ``as_of`` is given, planting dates older than the policy's grace
	window are rejected with ``InvalidPlantingDate``.
	"""
	policy = policy or EnginePolicy()
	validate_profile(profile, policy)

	if as_of is not None and planting_date < as_of - timedelta(days=policy.planting_grace_days):
		raise InvalidPlantingDate(
			f"planting_date {planting_date.isoformat()} is more than "
			f"{policy.planting_grace_days} days before {as_of.isoformat()}"
		)

	windows: list[StageWindow] = []
	cursor = planting_date
	for stage, duration in zip(profile.growth_stages, stage_durations(profile)):
		end = cursor + timedelta(days=duration - 1)
		windows.append(StageWindow(stage=stage.name, start_date=cursor, end_date=end))
		cursor = end + ONE_DAY

	final_end = planting_date + timedelta(days=profile.growing_period_days - 1)
	windows[-1] = windows[-1].model_copy(update={"end_date": final_end})
	return GrowthTimeline(
		windows=windows,
		expected_harvest_date=planting_date + timedelta(days=profile.growing_period_days),
	)


def expected_stage_index(windows: list[StageWindow], day: date) -> int | None:
	"""Index of the window containing ``day``; ``None`` before planting.

	Days after the final window map to the final stage (the crop is mature
	and waiting for harvest).
	"""
	if not windows or day < windows[0].start_date:
		return None
	for idx, window in enumerate(windows):
		if window.contains(day):
			return idx
	return len(windows) - 1


def _apportion(span: int, weights: list[int]) -> list[int]:
	count = len(weights)
	if span < count:
		return [1] * count
	total = sum(weights)
	shares = [max(1, _round_half_up(weight * span / total)) for weight in weights[:-1]]
	last = span - sum(shares)
	if last < 1:
		shares = [1] * (count - 1)
		last = span - (count - 1)
	return [*shares, last]


def reanchor_timeline(
	profile: CropProfileData,
	previous: GrowthTimeline,
	as_of: date,
	current_index: int,
	*,
	extend_current: bool = False,
) -> GrowthTimeline:
	"""Re-lay remaining stages around ``as_of`` with stage ``current_index`` in progress.

	Windows that closed before ``as_of`` are kept verbatim.  Stages the crop
	skipped over (observed ahead of schedule) are compressed into the days
	left before ``as_of``, one day minimum each, and the current stage then
	starts on ``as_of``.  Later stages follow with their template durations.
	A current stage that keeps its start also keeps an earlier extension.
	``extend_current`` stretches a stage the crop is still observed in past
	its template end so the window includes ``as_of``.
	"""
	if [window.stage for window in previous.windows] != profile.stage_names():
		return build_growth_timeline(profile, previous.start_date)

	durations = stage_durations(profile)
	windows: list[StageWindow] = []
	for window in previous.windows[:current_index]:
		if window.end_date >= as_of:
			break
		windows.append(window)

	cursor = windows[-1].end_date + ONE_DAY if windows else previous.start_date
	skipped = list(range(len(windows), current_index))
	if skipped:
		span = (as_of - cursor).days
		for idx, share in zip(skipped, _apportion(span, [durations[i] for i in skipped])):
			end = cursor + timedelta(days=share - 1)
			windows.append(StageWindow(stage=profile.growth_stages[idx].name, start_date=cursor, end_date=end))
			cursor = end + ONE_DAY

	current_end = cursor + timedelta(days=durations[current_index] - 1)
	previous_current = previous.windows[current_index]
	if previous_current.start_date == cursor and previous_current.end_date > current_end:
		current_end = previous_current.end_date
	if extend_current and current_end < as_of:
		current_end = as_of
	windows.append(
		StageWindow(stage=profile.growth_stages[current_index].name, start_date=cursor, end_date=current_end)
	)
	cursor = current_end + ONE_DAY

	for idx in range(current_index + 1, len(durations)):
		end = cursor + timedelta(days=durations[idx] - 1)
		windows.append(StageWindow(stage=profile.growth_stages[idx].name, start_date=cursor, end_date=end))
		cursor = end + ONE_DAY

	return GrowthTimeline(windows=windows, expected_harvest_date=cursor)
