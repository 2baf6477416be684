"""Crisis risk analysis API routes."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth import get_user_by_token
from schemas.crisis_schema import ContentAnalysisRequest, ContentAnalysisResponse, PatternAnalysis
from services import content_analysis, crisis_records, pattern_analysis, risk_scoring


router = APIRouter(prefix="/crisis", tags=["crisis"])
bearer_scheme = HTTPBearer(auto_error=False)

HIGH_RISK_ALERT_THRESHOLD = 0.7


async def _get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> dict[str, Any]:
	if credentials is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization header missing")

	token = credentials.credentials
	user = await get_user_by_token(token)
	if not user:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

	return user | {"token": token}


def _serialize_analysis(analysis: PatternAnalysis) -> dict[str, Any]:
	return {
		"intervention_stats": {name: asdict(stat) for name, stat in analysis.intervention_stats.items()},
		"crisis_precursors": [
			{"mood": item.mood, "timestamp": item.timestamp.isoformat(), "notes": item.notes}
			for item in analysis.crisis_precursors
		],
		"risk_score": analysis.risk_score,
		"vulnerable_hours": [asdict(item) for item in analysis.vulnerable_hours],
		"show_alert": analysis.risk_score > HIGH_RISK_ALERT_THRESHOLD,
	}


def _store_unavailable() -> HTTPException:
	return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Crisis history is temporarily unavailable")


@router.get("/risk")
async def get_crisis_risk(
	scorer: Literal["composite", "trend"] = Query(default="composite"),
	current_user: dict[str, Any] = Depends(_get_current_user),
) -> dict[str, Any]:
	score = await risk_scoring.predict_crisis_risk(str(current_user["id"]), risk_scoring.SCORERS[scorer])
	return {"scorer": scorer, "risk_score": score}


@router.get("/patterns")
async def get_patterns(current_user: dict[str, Any] = Depends(_get_current_user)) -> dict[str, Any]:
	try:
		resolutions, check_ins = await crisis_records.load_user_history(str(current_user["id"]))
	except crisis_records.RecordFetchError as exc:
		raise _store_unavailable() from exc

	return _serialize_analysis(pattern_analysis.analyze_patterns(resolutions, check_ins))


@router.get("/vulnerable-hours")
async def get_vulnerable_hours(current_user: dict[str, Any] = Depends(_get_current_user)) -> dict[str, Any]:
	try:
		resolutions = await crisis_records.load_crisis_resolutions(str(current_user["id"]))
	except crisis_records.RecordFetchError as exc:
		raise _store_unavailable() from exc

	hours = pattern_analysis.identify_vulnerable_hours(resolutions)
	return {"items": [asdict(item) for item in hours]}


@router.get("/interventions")
async def get_interventions(current_user: dict[str, Any] = Depends(_get_current_user)) -> dict[str, Any]:
	items = await risk_scoring.get_personalized_interventions(str(current_user["id"]))
	return {"items": items}


@router.post("/content-analysis", response_model=ContentAnalysisResponse)
async def analyze_content(
	payload: ContentAnalysisRequest,
	current_user: dict[str, Any] = Depends(_get_current_user),
) -> ContentAnalysisResponse:
	text = content_analysis.sanitize_crisis_text(payload.text)
	assessment = content_analysis.analyze_crisis_content(text)
	return ContentAnalysisResponse(**asdict(assessment))
