"""Read access to a user's crisis resolutions and check-ins in the record store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Mapping, Tuple, Type, TypeVar

import asyncpg
from pydantic import BaseModel, ValidationError

from db import db_session
from schemas.crisis_schema import CheckInRecord, CrisisResolutionRecord

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordStoreError(Exception):
	"""Base class for record store access problems."""


class RecordFetchError(RecordStoreError):
	"""Raised when crisis history cannot be loaded from the record store."""


_FETCH_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError, RuntimeError)


CRISIS_RESOLUTIONS_SQL = """
	SELECT id, user_id, crisis_start_time, resolution_time, interventions_used,
		   effectiveness_rating, additional_notes, safety_confirmed
	FROM crisis_resolutions
	WHERE user_id = $1
	ORDER BY created_at DESC
"""


CHECK_IN_RESPONSES_SQL = """
	SELECT id, user_id, task_id, timestamp, mood_rating, notes, needs_support
	FROM check_in_responses
	WHERE user_id = $1
	ORDER BY timestamp DESC
"""


def _resolution_payload(row: Mapping[str, Any]) -> dict[str, Any]:
	return {
		"id": row["id"],
		"user_id": row["user_id"],
		"crisis_start_time": row["crisis_start_time"],
		"resolution_time": row["resolution_time"],
		"interventions_used": row.get("interventions_used"),
		"effectiveness_rating": row.get("effectiveness_rating"),
		"notes": row.get("additional_notes"),
		"safety_confirmed": bool(row.get("safety_confirmed")),
	}


def _check_in_payload(row: Mapping[str, Any]) -> dict[str, Any]:
	return {
		"id": row["id"],
		"user_id": row["user_id"],
		"task_id": row.get("task_id"),
		"timestamp": row["timestamp"],
		"mood_rating": row["mood_rating"],
		"notes": row.get("notes"),
		"needs_support": bool(row.get("needs_support")),
	}


def _parse_rows(rows: Iterable[Mapping[str, Any]], model: Type[RecordT], to_payload) -> List[RecordT]:
	"""Validate fetched rows, skipping malformed ones instead of failing the whole load."""

	records: List[RecordT] = []
	for row in rows:
		row = dict(row)
		try:
			records.append(model.model_validate(to_payload(row)))
		except (KeyError, TypeError, ValidationError) as exc:
			logger.warning(f"Skipping malformed {model.__name__} row {row.get('id')!r}: {exc}")
	return records


def parse_crisis_resolutions(rows: Iterable[Mapping[str, Any]]) -> List[CrisisResolutionRecord]:
	return _parse_rows(rows, CrisisResolutionRecord, _resolution_payload)


def parse_check_in_responses(rows: Iterable[Mapping[str, Any]]) -> List[CheckInRecord]:
	return _parse_rows(rows, CheckInRecord, _check_in_payload)


async def load_crisis_resolutions(user_id: str) -> List[CrisisResolutionRecord]:
	"""Return the user's crisis resolutions, newest first."""

	try:
		async with db_session() as conn:
			rows = await conn.fetch(CRISIS_RESOLUTIONS_SQL, user_id)
	except _FETCH_ERRORS as exc:
		raise RecordFetchError(f"Could not load crisis resolutions for user {user_id}") from exc
	return parse_crisis_resolutions(rows)


async def load_user_history(user_id: str) -> Tuple[List[CrisisResolutionRecord], List[CheckInRecord]]:
	"""Fetch resolutions and check-ins over a single connection."""

	try:
		async with db_session() as conn:
			resolution_rows = await conn.fetch(CRISIS_RESOLUTIONS_SQL, user_id)
			check_in_rows = await conn.fetch(CHECK_IN_RESPONSES_SQL, user_id)
	except _FETCH_ERRORS as exc:
		raise RecordFetchError(f"Could not load crisis history for user {user_id}") from exc
	return parse_crisis_resolutions(resolution_rows), parse_check_in_responses(check_in_rows)
