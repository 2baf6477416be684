"""Composite and trend crisis risk scoring plus history-based intervention picks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Protocol, Sequence

from schemas.crisis_schema import CheckInRecord, CrisisPattern, CrisisResolutionRecord, RiskFactors
from services.crisis_records import RecordStoreError, load_crisis_resolutions, load_user_history
from services.pattern_analysis import (
	analyze_crisis_patterns,
	calculate_risk_score,
	find_crisis_precursors,
	local_hour,
	rank_interventions,
	select_recent_check_ins,
)

logger = logging.getLogger(__name__)


NO_HISTORY_RISK = 0.1
DEGRADED_RISK = 0.5
MIN_COMPOSITE_RISK = 0.05
MAX_COMPOSITE_RISK = 0.95

COMPOSITE_WEIGHTS: Dict[str, float] = {
	"time_based_risk": 0.25,
	"trigger_risk": 0.35,
	"intervention_gap": 0.25,
	"overall_pattern": 0.15,
}

EFFECTIVE_INTERVENTION_THRESHOLD = 7
MAX_PERSONALIZED_INTERVENTIONS = 3
DEFAULT_INTERVENTIONS: tuple[str, ...] = ("breathing_exercise", "support_contact", "grounding_technique")


def _now() -> datetime:
	"""Return a timezone-aware UTC timestamp (patchable in tests)."""

	return datetime.now(timezone.utc)


def _clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


def calculate_risk_factors(patterns: CrisisPattern, *, current_hour: int) -> RiskFactors:
	"""Normalise a user's crisis patterns into four factors in [0, 1]."""

	hour_entry = next((item for item in patterns.time_of_day if item.hour == current_hour), None)
	time_based_risk = _clamp(hour_entry.frequency / 10, 0.0, 1.0) if hour_entry else 0.1

	trigger_risk = _clamp(patterns.triggers[0].frequency / 5, 0.0, 1.0) if patterns.triggers else 0.2

	if patterns.intervention_effectiveness:
		top = patterns.intervention_effectiveness[0]
		intervention_confidence = _clamp(top.average_effectiveness / 10, 0.0, 1.0)
	else:
		intervention_confidence = 0.5

	# More trajectory history means less weight on the unknown.
	overall_pattern = 0.3 if len(patterns.mood_trajectory) > 3 else 0.5

	return RiskFactors(
		time_based_risk=time_based_risk,
		trigger_risk=trigger_risk,
		intervention_confidence=intervention_confidence,
		overall_pattern=overall_pattern,
	)


def calculate_composite_risk_score(factors: RiskFactors) -> float:
	score = (
		factors.time_based_risk * COMPOSITE_WEIGHTS["time_based_risk"]
		+ factors.trigger_risk * COMPOSITE_WEIGHTS["trigger_risk"]
		+ (1 - factors.intervention_confidence) * COMPOSITE_WEIGHTS["intervention_gap"]
		+ factors.overall_pattern * COMPOSITE_WEIGHTS["overall_pattern"]
	)
	return _clamp(score, MIN_COMPOSITE_RISK, MAX_COMPOSITE_RISK)


class RiskScorer(Protocol):
	name: str

	def score(
		self,
		resolutions: Sequence[CrisisResolutionRecord],
		check_ins: Sequence[CheckInRecord],
	) -> float:
		...


@dataclass(frozen=True)
class CompositeRiskScorer:
	"""Long-horizon baseline risk from time, trigger, intervention and maturity factors."""

	name: str = "composite"

	def score(
		self,
		resolutions: Sequence[CrisisResolutionRecord],
		check_ins: Sequence[CheckInRecord] = (),
	) -> float:
		if not resolutions:
			return NO_HISTORY_RISK
		patterns = analyze_crisis_patterns(resolutions, check_ins)
		factors = calculate_risk_factors(patterns, current_hour=local_hour(_now()))
		return calculate_composite_risk_score(factors)


@dataclass(frozen=True)
class TrendRiskScorer:
	"""Short-horizon risk: has mood dropped or have low points clustered recently?"""

	name: str = "trend"

	def score(
		self,
		resolutions: Sequence[CrisisResolutionRecord],
		check_ins: Sequence[CheckInRecord] = (),
	) -> float:
		return calculate_risk_score(select_recent_check_ins(check_ins), find_crisis_precursors(check_ins))


COMPOSITE_SCORER = CompositeRiskScorer()
TREND_SCORER = TrendRiskScorer()

SCORERS: Dict[str, RiskScorer] = {
	COMPOSITE_SCORER.name: COMPOSITE_SCORER,
	TREND_SCORER.name: TREND_SCORER,
}


async def predict_crisis_risk(user_id: str, scorer: RiskScorer = COMPOSITE_SCORER) -> float:
	"""Score a user's crisis risk from their stored history.

	Returns 0.1 when the user has no crisis history and 0.5 when the history
	cannot be fetched, so callers can tell "no data" from "unknown".
	"""

	try:
		resolutions, check_ins = await load_user_history(user_id)
	except RecordStoreError as exc:
		logger.error(f"Failed to predict crisis risk for user {user_id}: {exc}")
		return DEGRADED_RISK

	score = scorer.score(resolutions, check_ins)
	logger.info(f"{scorer.name} risk for user {user_id}: {score:.3f} ({len(resolutions)} resolutions)")
	return score


async def get_personalized_interventions(user_id: str) -> List[str]:
	"""Up to three interventions that historically worked for this user (rated 7+)."""

	try:
		resolutions = await load_crisis_resolutions(user_id)
	except RecordStoreError as exc:
		logger.error(f"Failed to get personalized interventions for user {user_id}: {exc}")
		return list(DEFAULT_INTERVENTIONS)

	effective = [
		item.intervention
		for item in rank_interventions(resolutions)
		if item.average_effectiveness >= EFFECTIVE_INTERVENTION_THRESHOLD
	]
	if not effective:
		return list(DEFAULT_INTERVENTIONS)
	return effective[:MAX_PERSONALIZED_INTERVENTIONS]
