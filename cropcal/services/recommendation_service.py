"""Rule-based recommendation synthesizer.

Turns the risk factors and the schedule around ``as_of`` into short
templated advisories.  No model inference is involved.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from cropcal.models.enums import EventStatusEnum, RecommendationPriorityEnum
from cropcal.schemas.calendar import GrowthTimeline, Recommendation, RiskAssessment, RiskFactor, Schedules
from cropcal.services.policy import EnginePolicy

STAGE_TRANSITION_NOTICE_DAYS = 3

PRIORITY_ORDER = {
	RecommendationPriorityEnum.high: 0,
	RecommendationPriorityEnum.medium: 1,
	RecommendationPriorityEnum.low: 2,
}

FACTOR_ADVICE: dict[str, str] = {
	"temperature_above_tolerance": "Irrigate in the early morning and avoid field work at midday.",
	"temperature_below_tolerance": "Delay nitrogen top-dressing until temperatures recover.",
	"forecast_heat_stress": "Plan irrigation ahead of the hot spell.",
	"forecast_cold_stress": "Prepare frost protection for the coming cold days.",
	"soil_moisture_below_tolerance": "Increase irrigation frequency until soil moisture recovers.",
	"soil_moisture_above_tolerance": "Use light irrigation only and check field drainage.",
	"soil_ph_out_of_range": "Test the soil and plan a pH correction before the next fertilization.",
	"ndvi_below_expected": "Scout the field for nutrient deficiency or pest damage.",
	"overdue_pest_management": "Carry out the overdue pest management as soon as conditions allow.",
	"pest_activity_due": "Stock pest control inputs for the upcoming applications.",
}


def _factor_priority(factor: RiskFactor) -> RecommendationPriorityEnum:
	if factor.weight >= 10:
		return RecommendationPriorityEnum.high
	if factor.weight >= 5:
		return RecommendationPriorityEnum.medium
	return RecommendationPriorityEnum.low


def _from_risk(risk: RiskAssessment, policy: EnginePolicy) -> list[Recommendation]:
	scored = [factor for factor in risk.factors if factor.weight > 0]
	recommendations: list[Recommendation] = []
	for factor in scored[: policy.recommendation_top_n]:
		advice = FACTOR_ADVICE.get(factor.code, "Review field conditions.")
		recommendations.append(
			Recommendation(
				code=f"risk_{factor.code}",
				priority=_factor_priority(factor),
				category="risk",
				message=f"{factor.message}. {advice}",
				context={"stage": risk.stage, "weight": factor.weight, **factor.details},
			)
		)
	return recommendations


def build_recommendations(
	timeline: GrowthTimeline,
	schedules: Schedules,
	risk: RiskAssessment,
	as_of: datetime,
	policy: EnginePolicy | None = None,
) -> list[Recommendation]:
	policy = policy or EnginePolicy()
	day = as_of.date()
	horizon_end = day + timedelta(days=policy.forecast_horizon_days)
	lookback_start = day - timedelta(days=policy.overdue_lookback_days)
	recommendations = _from_risk(risk, policy)

	for event in schedules.irrigation:
		if event.status != EventStatusEnum.skipped or not day <= event.date < horizon_end:
			continue
		rain = event.details.get("forecast_precipitation_mm")
		recommendations.append(
			Recommendation(
				code="irrigation_skipped",
				priority=RecommendationPriorityEnum.medium,
				category="irrigation",
				message=(
					f"Irrigation on {event.date.isoformat()} is skipped: {rain} mm of rain is forecast. "
					"Check soil moisture before resuming."
				),
				context={"event_id": event.event_id, "date": event.date.isoformat(), "forecast_precipitation_mm": rain},
			)
		)

	for event in schedules.all_events():
		if event.status != EventStatusEnum.planned or not lookback_start <= event.date < day:
			continue
		days_late = (day - event.date).days
		recommendations.append(
			Recommendation(
				code=f"overdue_{event.kind}",
				priority=RecommendationPriorityEnum.high,
				category=event.kind,
				message=(
					f"{event.kind.replace('_', ' ').capitalize()} planned for {event.date.isoformat()} "
					f"is {days_late} day(s) overdue"
				),
				context={"event_id": event.event_id, "date": event.date.isoformat(), "days_overdue": days_late},
			)
		)

	notice_end = day + timedelta(days=STAGE_TRANSITION_NOTICE_DAYS)
	for window in timeline.windows:
		if day < window.start_date <= notice_end:
			recommendations.append(
				Recommendation(
					code="upcoming_stage_transition",
					priority=RecommendationPriorityEnum.low,
					category="activity",
					message=(
						f"{window.stage.capitalize()} stage is expected to begin on "
						f"{window.start_date.isoformat()}"
					),
					context={"stage": window.stage, "date": window.start_date.isoformat()},
				)
			)

	recommendations.sort(key=lambda item: (PRIORITY_ORDER[item.priority], item.code, item.message))
	return recommendations
