from __future__ import annotations

import logging
import os
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from schemas.crisis_schema import (
	CheckInRecord,
	CrisisPattern,
	CrisisPrecursor,
	CrisisResolutionRecord,
	HourFrequency,
	InterventionEffectiveness,
	InterventionStat,
	MoodTrajectory,
	PatternAnalysis,
	TriggerFrequency,
	VulnerableHour,
)
from services.content_analysis import find_keywords, normalize_text

load_dotenv()

logger = logging.getLogger(__name__)


LOCAL_TIMEZONE = os.getenv("CRISIS_LOCAL_TIMEZONE", "UTC")

TRIGGER_KEYWORDS: tuple[str, ...] = ("stress", "isolation", "conflict", "financial", "health", "family")

PRECURSOR_MOOD_THRESHOLD = 3
RECENT_CHECK_IN_DAYS = 7
PRECURSOR_WINDOW_DAYS = 30
TREND_SAMPLE_SIZE = 5
VULNERABLE_HOUR_THRESHOLD = 0.1
TRAJECTORY_WINDOW = timedelta(hours=48)


def _now() -> datetime:
	"""Return a timezone-aware UTC timestamp (patchable in tests)."""

	return datetime.now(timezone.utc)


def _local_zone() -> tzinfo:
	if LOCAL_TIMEZONE.upper() == "UTC":
		return timezone.utc
	try:
		return ZoneInfo(LOCAL_TIMEZONE)
	except (ZoneInfoNotFoundError, ValueError):
		logger.warning(f"Unknown CRISIS_LOCAL_TIMEZONE {LOCAL_TIMEZONE!r}; falling back to UTC")
		return timezone.utc


def local_hour(timestamp: datetime, zone: tzinfo | None = None) -> int:
	"""Hour of day (0-23) of a timestamp in the configured local zone."""

	if timestamp.tzinfo is None:
		timestamp = timestamp.replace(tzinfo=timezone.utc)
	return timestamp.astimezone(zone or _local_zone()).hour


def _age_in_days(timestamp: datetime, now: datetime) -> float:
	if timestamp.tzinfo is None:
		timestamp = timestamp.replace(tzinfo=timezone.utc)
	return (now - timestamp).total_seconds() / 86400


def analyze_time_patterns(resolutions: Sequence[CrisisResolutionRecord]) -> List[HourFrequency]:
	"""Count crises per local hour of day, most frequent first."""

	zone = _local_zone()
	counts = Counter(local_hour(record.crisis_start_time, zone) for record in resolutions or [])
	return [HourFrequency(hour=hour, frequency=frequency) for hour, frequency in counts.most_common()]


def extract_triggers(resolutions: Sequence[CrisisResolutionRecord]) -> List[TriggerFrequency]:
	counts: Counter[str] = Counter()
	for record in resolutions or []:
		if not record.notes:
			continue
		counts.update(find_keywords(normalize_text(record.notes), TRIGGER_KEYWORDS))
	return [TriggerFrequency(trigger=trigger, frequency=frequency) for trigger, frequency in counts.most_common()]


def _collect_ratings(resolutions: Sequence[CrisisResolutionRecord]) -> Dict[str, List[int]]:
	ratings: Dict[str, List[int]] = defaultdict(list)
	for record in resolutions or []:
		if record.effectiveness_rating is None:
			continue
		for intervention in record.interventions_used:
			ratings[intervention].append(record.effectiveness_rating)
	return ratings


def rank_interventions(resolutions: Sequence[CrisisResolutionRecord]) -> List[InterventionEffectiveness]:
	"""Mean effectiveness per intervention, best first.

	Interventions that were never rated are left out rather than reported with
	an undefined average.
	"""

	ranked = [
		InterventionEffectiveness(intervention=intervention, average_effectiveness=sum(values) / len(values))
		for intervention, values in _collect_ratings(resolutions).items()
	]
	ranked.sort(key=lambda item: item.average_effectiveness, reverse=True)
	return ranked


def summarize_interventions(resolutions: Sequence[CrisisResolutionRecord]) -> Dict[str, InterventionStat]:
	return {
		intervention: InterventionStat(
			count=len(values),
			total_effectiveness=sum(values),
			average_effectiveness=sum(values) / len(values),
		)
		for intervention, values in _collect_ratings(resolutions).items()
	}


def analyze_mood_trajectory(
	resolutions: Sequence[CrisisResolutionRecord],
	check_ins: Sequence[CheckInRecord],
) -> List[MoodTrajectory]:
	"""Pair each crisis with the closest check-ins before it started and after it resolved.

	Crises without a check-in inside the 48 hour window on both sides produce no
	sample.
	"""

	ordered = sorted(check_ins or [], key=lambda check_in: check_in.timestamp)
	samples: List[MoodTrajectory] = []
	for record in resolutions or []:
		before = [
			c for c in ordered
			if timedelta(0) <= record.crisis_start_time - c.timestamp <= TRAJECTORY_WINDOW
		]
		after = [
			c for c in ordered
			if timedelta(0) <= c.timestamp - record.resolution_time <= TRAJECTORY_WINDOW
		]
		if before and after:
			samples.append(MoodTrajectory(before_crisis=before[-1].mood_rating, after_resolution=after[0].mood_rating))
	return samples


def analyze_crisis_patterns(
	resolutions: Sequence[CrisisResolutionRecord],
	check_ins: Sequence[CheckInRecord] = (),
) -> CrisisPattern:
	return CrisisPattern(
		time_of_day=analyze_time_patterns(resolutions),
		triggers=extract_triggers(resolutions),
		intervention_effectiveness=rank_interventions(resolutions),
		mood_trajectory=analyze_mood_trajectory(resolutions, check_ins),
	)


def find_crisis_precursors(check_ins: Sequence[CheckInRecord]) -> List[CrisisPrecursor]:
	return [
		CrisisPrecursor(mood=c.mood_rating, timestamp=c.timestamp, notes=c.notes or "")
		for c in check_ins or []
		if c.mood_rating <= PRECURSOR_MOOD_THRESHOLD
	]


def select_recent_check_ins(check_ins: Sequence[CheckInRecord], days: int = RECENT_CHECK_IN_DAYS) -> List[CheckInRecord]:
	"""Check-ins from the last ``days`` days, newest first."""

	now = _now()
	recent = [c for c in check_ins or [] if 0 <= _age_in_days(c.timestamp, now) <= days]
	recent.sort(key=lambda c: c.timestamp, reverse=True)
	return recent


def calculate_risk_score(
	recent_check_ins: Sequence[CheckInRecord],
	crisis_precursors: Sequence[CrisisPrecursor],
) -> float:
	"""Short-horizon risk from the recent mood trend and recent low points.

	``recent_check_ins`` must be ordered newest first; only the first five are
	used. A mood that dropped across that window (newest lower than oldest)
	adds trend risk, a flat or improving one adds none.
	"""

	if not recent_check_ins:
		return 0.0

	recent_moods = [c.mood_rating for c in list(recent_check_ins)[:TREND_SAMPLE_SIZE]]
	average_mood = sum(recent_moods) / len(recent_moods)
	mood_trend = recent_moods[0] - recent_moods[-1] if len(recent_moods) > 1 else 0

	mood_risk = max(0.0, (5 - average_mood) / 5) * 0.4
	trend_risk = max(0.0, -mood_trend / 10) * 0.3

	now = _now()
	recent_crises = [p for p in crisis_precursors or [] if _age_in_days(p.timestamp, now) <= PRECURSOR_WINDOW_DAYS]
	crisis_frequency_risk = min(1.0, len(recent_crises) / 5) * 0.3

	return max(0.0, min(1.0, mood_risk + trend_risk + crisis_frequency_risk))


def identify_vulnerable_hours(resolutions: Sequence[CrisisResolutionRecord]) -> List[VulnerableHour]:
	"""Hours holding more than 10% of all recorded crises, most likely first."""

	resolutions = resolutions or []
	total = len(resolutions)
	if total == 0:
		return []

	zone = _local_zone()
	hour_counts = [0] * 24
	for record in resolutions:
		hour_counts[local_hour(record.crisis_start_time, zone)] += 1

	hours = [
		VulnerableHour(hour=hour, probability=count / total)
		for hour, count in enumerate(hour_counts)
		if count / total > VULNERABLE_HOUR_THRESHOLD
	]
	hours.sort(key=lambda item: item.probability, reverse=True)
	return hours


def analyze_patterns(
	resolutions: Sequence[CrisisResolutionRecord],
	check_ins: Sequence[CheckInRecord],
) -> PatternAnalysis:
	"""Build the dashboard snapshot: intervention stats, precursors, trend risk and vulnerable hours."""

	crisis_precursors = find_crisis_precursors(check_ins)
	risk_score = calculate_risk_score(select_recent_check_ins(check_ins), crisis_precursors)
	logger.debug(f"Trend risk score {risk_score:.3f} from {len(check_ins or [])} check-ins")

	return PatternAnalysis(
		intervention_stats=summarize_interventions(resolutions),
		crisis_precursors=crisis_precursors,
		risk_score=risk_score,
		vulnerable_hours=identify_vulnerable_hours(resolutions),
	)
