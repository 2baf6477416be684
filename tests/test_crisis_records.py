from __future__ import annotations

from datetime import datetime, timezone

import pytest

import db
from services import crisis_records
from services.crisis_records import RecordFetchError, load_crisis_resolutions, load_user_history

from tests.stubs import StubConnection


def _resolution_row(**overrides):
    row = {
        "id": 11,
        "user_id": 7,
        "crisis_start_time": datetime(2024, 12, 30, 23, 10, tzinfo=timezone.utc),
        "resolution_time": datetime(2024, 12, 31, 0, 5, tzinfo=timezone.utc),
        "interventions_used": ["breathing", "support_contact"],
        "effectiveness_rating": 8,
        "additional_notes": "Family conflict again",
        "safety_confirmed": True,
    }
    row.update(overrides)
    return row


def _check_in_row(**overrides):
    row = {
        "id": 3,
        "user_id": 7,
        "task_id": 21,
        "timestamp": datetime(2024, 12, 31, 9, 0),
        "mood_rating": 3,
        "notes": "",
        "needs_support": None,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_load_crisis_resolutions_parses_rows(make_db_session):
    fake_conn = StubConnection(fetch_results=[[_resolution_row()]])
    make_db_session(crisis_records, fake_conn)

    records = await load_crisis_resolutions("7")

    assert len(records) == 1
    record = records[0]
    assert record.id == "11"
    assert record.user_id == "7"
    assert record.interventions_used == ["breathing", "support_contact"]
    assert record.notes == "Family conflict again"
    assert fake_conn.fetch_calls[0][1] == ("7",)
    assert "FROM crisis_resolutions" in fake_conn.fetch_calls[0][0]
    assert fake_conn.closed is True


@pytest.mark.asyncio
async def test_malformed_rows_are_skipped(make_db_session):
    rows = [
        _resolution_row(),
        _resolution_row(id=12, resolution_time=datetime(2024, 12, 30, 22, 0, tzinfo=timezone.utc)),
        _resolution_row(id=13, effectiveness_rating=14),
        {"id": 14},
    ]
    make_db_session(crisis_records, StubConnection(fetch_results=[rows]))

    records = await load_crisis_resolutions("7")

    assert [record.id for record in records] == ["11"]


@pytest.mark.asyncio
async def test_non_list_interventions_are_skipped(make_db_session):
    rows = [
        _resolution_row(),
        _resolution_row(id=12, interventions_used=5),
        _resolution_row(id=13, interventions_used="breathing"),
    ]
    make_db_session(crisis_records, StubConnection(fetch_results=[rows]))

    records = await load_crisis_resolutions("7")

    assert [record.id for record in records] == ["11"]


@pytest.mark.asyncio
async def test_zero_rating_and_missing_interventions_are_unrated(make_db_session):
    rows = [_resolution_row(effectiveness_rating=0, interventions_used=None, additional_notes=None)]
    make_db_session(crisis_records, StubConnection(fetch_results=[rows]))

    (record,) = await load_crisis_resolutions("7")

    assert record.effectiveness_rating is None
    assert record.interventions_used == []
    assert record.notes is None


@pytest.mark.asyncio
async def test_load_user_history_uses_one_connection(make_db_session):
    fake_conn = StubConnection(fetch_results=[[_resolution_row()], [_check_in_row()]])
    make_db_session(crisis_records, fake_conn)

    resolutions, check_ins = await load_user_history("7")

    assert len(resolutions) == 1
    assert len(check_ins) == 1
    check_in = check_ins[0]
    assert check_in.task_id == "21"
    assert check_in.notes is None
    assert check_in.needs_support is False
    assert check_in.timestamp.tzinfo is not None
    assert len(fake_conn.fetch_calls) == 2
    assert "FROM check_in_responses" in fake_conn.fetch_calls[1][0]


@pytest.mark.asyncio
async def test_missing_connection_string_raises_fetch_error(monkeypatch):
    monkeypatch.setattr(db, "CONNECTION", None)

    with pytest.raises(RecordFetchError):
        await load_user_history("7")


@pytest.mark.asyncio
async def test_connection_failure_raises_fetch_error(monkeypatch):
    class _BrokenSession:
        async def __aenter__(self):
            raise ConnectionRefusedError("no route to record store")

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

    monkeypatch.setattr(crisis_records, "db_session", lambda: _BrokenSession())

    with pytest.raises(RecordFetchError) as excinfo:
        await load_crisis_resolutions("7")

    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)
