"""Keyword-tier classification of free-text crisis notes.

The classifier is a transparent lookup: every keyword that matches is reported
back to the caller, tagged with its tier, so a reviewer can see exactly why a
note was flagged.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern

from schemas.crisis_schema import TextRiskAssessment, UrgencyLevel


MAX_CRISIS_TEXT_LENGTH = 2000

MODERATE_REVIEW_THRESHOLD = 2


SEVERE_INDICATORS: tuple[str, ...] = (
	"suicide",
	"kill myself",
	"end it all",
	"not worth living",
	"want to die",
	"better off dead",
	"harm myself",
)

HIGH_INDICATORS: tuple[str, ...] = (
	"hopeless",
	"can't go on",
	"give up",
	"no point",
	"worthless",
	"burden",
	"escape",
	"pills",
)

MODERATE_INDICATORS: tuple[str, ...] = (
	"overwhelmed",
	"desperate",
	"trapped",
	"alone",
	"scared",
	"panic",
	"crisis",
	"help",
)

# Scanned in this order; the first tier with a match decides the urgency.
INDICATOR_TIERS: tuple[tuple[UrgencyLevel, str, tuple[str, ...]], ...] = (
	(UrgencyLevel.SEVERE, "Severe", SEVERE_INDICATORS),
	(UrgencyLevel.HIGH, "High", HIGH_INDICATORS),
	(UrgencyLevel.MODERATE, "Moderate", MODERATE_INDICATORS),
)


_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})
_WHITESPACE = re.compile(r"\s+")

_UNSAFE_MARKUP: tuple[Pattern[str], ...] = (
	re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
	re.compile(r"javascript:", re.IGNORECASE),
	re.compile(r"on\w+\s*=", re.IGNORECASE),
	re.compile(r"data:", re.IGNORECASE),
	re.compile(r"vbscript:", re.IGNORECASE),
)


def normalize_text(text: str) -> str:
	"""Lower-case text, unify apostrophes and collapse whitespace runs."""
	lowered = text.translate(_APOSTROPHES).lower()
	return _WHITESPACE.sub(" ", lowered).strip()


def keyword_pattern(keyword: str) -> Pattern[str]:
	"""Match a keyword at the start of a word; suffixes ("stressed") still match."""
	phrase = r"\s+".join(re.escape(part) for part in keyword.split())
	return re.compile(rf"\b{phrase}")


def find_keywords(normalized: str, keywords: Iterable[str]) -> List[str]:
	return [keyword for keyword in keywords if keyword_pattern(keyword).search(normalized)]


def sanitize_crisis_text(text: object) -> str:
	"""Strip markup that should never be stored or echoed back from a crisis note."""

	if not text or not isinstance(text, str):
		return ""
	sanitized = text
	for pattern in _UNSAFE_MARKUP:
		sanitized = pattern.sub("", sanitized)
	sanitized = re.sub(r"\n{3,}", "\n\n", sanitized.strip())
	return sanitized[:MAX_CRISIS_TEXT_LENGTH]


def analyze_crisis_content(text: object) -> TextRiskAssessment:
	"""Classify a single note into low/moderate/high/severe urgency.

	Empty or non-string input returns the low, no-review default; the function
	sits on the live typing path of the note editor and must never raise.
	"""

	if not text or not isinstance(text, str):
		return TextRiskAssessment()

	normalized = normalize_text(text)
	risk_indicators: List[str] = []
	matched_levels: List[UrgencyLevel] = []
	for level, label, keywords in INDICATOR_TIERS:
		matches = find_keywords(normalized, keywords)
		if matches:
			matched_levels.append(level)
		risk_indicators.extend(f"{label}: {keyword}" for keyword in matches)

	urgency_level = UrgencyLevel.LOW
	recommend_review = False
	if UrgencyLevel.SEVERE in matched_levels:
		urgency_level = UrgencyLevel.SEVERE
		recommend_review = True
	elif UrgencyLevel.HIGH in matched_levels:
		urgency_level = UrgencyLevel.HIGH
		recommend_review = True
	elif len(risk_indicators) > MODERATE_REVIEW_THRESHOLD:
		urgency_level = UrgencyLevel.MODERATE
		recommend_review = True

	return TextRiskAssessment(
		risk_indicators=risk_indicators,
		urgency_level=urgency_level,
		recommend_professional_review=recommend_review,
	)
