"""Record and result types for the crisis risk analysis engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(value: datetime) -> datetime:
	"""Treat naive timestamps as UTC so comparisons never mix naive and aware values."""
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	trimmed = value.strip()
	return trimmed or None


class CrisisResolutionRecord(BaseModel):
	"""A resolved crisis episode as supplied by the record store."""

	id: str
	user_id: str
	crisis_start_time: datetime
	resolution_time: datetime
	interventions_used: List[str] = Field(default_factory=list)
	effectiveness_rating: Optional[int] = Field(default=None, ge=1, le=10)
	notes: Optional[str] = Field(default=None, max_length=10000)
	safety_confirmed: bool = False

	model_config = {"frozen": True}

	@field_validator("id", "user_id", mode="before")
	@classmethod
	def _coerce_identifier(cls, value: object) -> str:
		return str(value)

	@field_validator("crisis_start_time", "resolution_time")
	@classmethod
	def _normalize_timestamp(cls, value: datetime) -> datetime:
		return _as_utc(value)

	@field_validator("interventions_used", mode="before")
	@classmethod
	def _normalize_interventions(cls, value: object) -> List[str]:
		if value is None:
			return []
		if not isinstance(value, (list, tuple)):
			raise ValueError("interventions_used must be a list of intervention names")
		return [str(item).strip() for item in value if item is not None and str(item).strip()]

	@field_validator("effectiveness_rating", mode="before")
	@classmethod
	def _zero_means_unrated(cls, value: object) -> object:
		return None if value == 0 else value

	@field_validator("notes")
	@classmethod
	def _normalize_notes(cls, value: Optional[str]) -> Optional[str]:
		return _blank_to_none(value)

	@model_validator(mode="after")
	def _check_resolution_order(self) -> "CrisisResolutionRecord":
		if self.resolution_time < self.crisis_start_time:
			raise ValueError("resolution_time must not precede crisis_start_time")
		return self


class CheckInRecord(BaseModel):
	"""A single check-in response with its mood rating."""

	id: str
	user_id: str
	task_id: Optional[str] = None
	timestamp: datetime
	mood_rating: int = Field(..., ge=1, le=10)
	notes: Optional[str] = None
	needs_support: bool = False

	model_config = {"frozen": True}

	@field_validator("id", "user_id", mode="before")
	@classmethod
	def _coerce_identifier(cls, value: object) -> str:
		return str(value)

	@field_validator("task_id", mode="before")
	@classmethod
	def _coerce_task_id(cls, value: object) -> Optional[str]:
		return None if value is None else str(value)

	@field_validator("timestamp")
	@classmethod
	def _normalize_timestamp(cls, value: datetime) -> datetime:
		return _as_utc(value)

	@field_validator("notes")
	@classmethod
	def _normalize_notes(cls, value: Optional[str]) -> Optional[str]:
		return _blank_to_none(value)


class UrgencyLevel(str, Enum):
	LOW = "low"
	MODERATE = "moderate"
	HIGH = "high"
	SEVERE = "severe"


@dataclass(frozen=True)
class HourFrequency:
	hour: int
	frequency: int


@dataclass(frozen=True)
class TriggerFrequency:
	trigger: str
	frequency: int


@dataclass(frozen=True)
class InterventionEffectiveness:
	intervention: str
	average_effectiveness: float


@dataclass
class InterventionStat:
	count: int = 0
	total_effectiveness: int = 0
	average_effectiveness: float = 0.0


@dataclass(frozen=True)
class MoodTrajectory:
	before_crisis: int
	after_resolution: int


@dataclass(frozen=True)
class CrisisPattern:
	"""Everything the risk factor calculator needs from a user's history."""

	time_of_day: List[HourFrequency]
	triggers: List[TriggerFrequency]
	intervention_effectiveness: List[InterventionEffectiveness]
	mood_trajectory: List[MoodTrajectory]


@dataclass(frozen=True)
class CrisisPrecursor:
	mood: int
	timestamp: datetime
	notes: str = ""


@dataclass(frozen=True)
class VulnerableHour:
	hour: int
	probability: float


@dataclass
class PatternAnalysis:
	intervention_stats: Dict[str, InterventionStat]
	crisis_precursors: List[CrisisPrecursor]
	risk_score: float
	vulnerable_hours: List[VulnerableHour]


@dataclass(frozen=True)
class RiskFactors:
	time_based_risk: float
	trigger_risk: float
	intervention_confidence: float
	overall_pattern: float


@dataclass
class TextRiskAssessment:
	risk_indicators: List[str] = field(default_factory=list)
	urgency_level: UrgencyLevel = UrgencyLevel.LOW
	recommend_professional_review: bool = False


class ContentAnalysisRequest(BaseModel):
	text: str = ""


class ContentAnalysisResponse(BaseModel):
	risk_indicators: List[str]
	urgency_level: UrgencyLevel
	recommend_professional_review: bool
