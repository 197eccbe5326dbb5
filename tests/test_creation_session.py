"""
Tests for a full creation flow
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import ConflictColumn, FieldValidationError
from app.services.creation_session import CreationSession, default_form_values, format_offset
from app.services.event_submitter import CreationContext, SubmissionStatus, TITLE_TAKEN_MESSAGE

DEBOUNCE = 0.05
NOW = datetime(2024, 2, 10, 0, 7, tzinfo=timezone(timedelta(hours=-6)))

def _session(store, **kwargs):
    return CreationSession(store, CreationContext(admin_id=3, admin_email="host@example.com"),
                           debounce_seconds=DEBOUNCE, now=NOW, **kwargs)

def _fill(session, title="Happy Birthday"):
    session.set_field("title", title)
    session.set_field("date", date(2024, 3, 1))
    session.set_field("hour", "7")
    session.set_field("minute", "05")
    session.set_field("meridiem", "PM")
    session.set_field("timezone", "-05:00")

def test_default_form_values():
    values = default_form_values(NOW)
    assert values == {
        "title": "",
        "slug": "",
        "date": None,
        "hour": "12",
        "minute": "07",
        "meridiem": "AM",
        "timezone": "-06:00",
    }

def test_format_offset_half_hour():
    assert format_offset(datetime(2024, 1, 1, tzinfo=timezone(timedelta(hours=5, minutes=30)))) == "+05:30"

def test_title_edit_derives_slug_and_marks_dirty(store):
    async def scenario():
        session = _session(store)
        assert not session.dirty
        session.set_field("title", "Happy Birthday!")
        snapshot = session.snapshot()
        session.close()
        return session, snapshot

    session, snapshot = asyncio.run(scenario())

    assert session.values["slug"] == "happy-birthday"
    assert session.dirty
    assert snapshot["title_check"]["pending"] is True
    assert snapshot["can_submit"] is False

def test_full_flow_creates_event(store):
    snapshots = []

    async def scenario():
        session = _session(store, on_change=lambda s: snapshots.append(s.snapshot()))
        _fill(session)
        await asyncio.sleep(DEBOUNCE * 3)
        assert session.gate().allowed
        return await session.submit()

    result = asyncio.run(scenario())

    assert result.status is SubmissionStatus.CREATED
    assert result.event.title == "happy birthday"
    assert result.event.slug == "happy-birthday"
    assert result.event.admin_id == 3
    assert result.event.event_date == "Fri Mar 1 2024 19:05:00 -05:00"
    assert any(s["submitting"] for s in snapshots)

def test_submit_blocked_while_title_check_pending(store):
    async def scenario():
        session = _session(store)
        _fill(session)
        result = await session.submit()
        session.close()
        return result

    result = asyncio.run(scenario())

    assert result.status is SubmissionStatus.REJECTED
    assert store.calls_to("insert_event") == []

def test_submit_blocked_when_title_taken(seeded_store):
    async def scenario():
        session = _session(seeded_store)
        _fill(session, title="Birthday Bash")
        await asyncio.sleep(DEBOUNCE * 3)
        return session, await session.submit()

    session, result = asyncio.run(scenario())

    assert result.status is SubmissionStatus.REJECTED
    assert result.field_errors["title"] == TITLE_TAKEN_MESSAGE
    assert session.message == TITLE_TAKEN_MESSAGE
    assert seeded_store.calls_to("insert_event") == []

def test_write_time_conflict_blocks_until_field_changes(store):
    store.forced_conflict = {ConflictColumn.SLUG}

    async def scenario():
        session = _session(store)
        _fill(session)
        await asyncio.sleep(DEBOUNCE * 3)
        result = await session.submit()
        blocked = session.gate().allowed
        store.forced_conflict = None
        session.set_field("slug", "happy-birthday-2")
        return session, result, blocked, session.gate().allowed

    session, result, blocked, reopened = asyncio.run(scenario())

    assert result.status is SubmissionStatus.CONFLICT
    assert set(result.field_errors) == {"slug"}
    assert blocked is False
    assert reopened is True

def test_unknown_field_rejected(store):
    async def scenario():
        session = _session(store)
        try:
            session.set_field("venue", "Hall")
        finally:
            session.close()

    with pytest.raises(FieldValidationError):
        asyncio.run(scenario())

@pytest.mark.parametrize("name", [["title"], {"title": 1}, None])
def test_non_string_field_name_rejected(store, name):
    async def scenario():
        session = _session(store)
        try:
            session.set_field(name, "Hall")
        finally:
            session.close()

    with pytest.raises(FieldValidationError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.errors == {"name": "Field name must be a string"}
