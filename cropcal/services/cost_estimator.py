"""Cost estimator — sums unit-cost ranges over the non-skipped schedule."""

from __future__ import annotations

from cropcal.models.enums import EventStatusEnum
from cropcal.schemas.calendar import CostEstimation, Schedules
from cropcal.schemas.crop import CostRange


def estimate_cost(schedules: Schedules, currency: str) -> CostEstimation:
	"""``Σ quantity × unit_cost`` per category.

	Quantities are already scaled to the planned area, so the totals are
	linear in area.  Skipped events and generic activity markers cost
	nothing.  No rounding happens here.
	"""
	breakdown: dict[str, CostRange] = {}
	total_min = 0.0
	total_max = 0.0
	event_count = 0

	for category, events in schedules.by_category().items():
		category_min = 0.0
		category_max = 0.0
		for event in events:
			if event.status == EventStatusEnum.skipped:
				continue
			event_count += 1
			for action in event.actions:
				category_min += action.quantity * action.unit_cost.min
				category_max += action.quantity * action.unit_cost.max
		breakdown[category.value] = CostRange(min=category_min, max=category_max)
		total_min += category_min
		total_max += category_max

	return CostEstimation(
		min=total_min,
		max=total_max,
		currency=currency,
		breakdown=breakdown,
		event_count=event_count,
	)
