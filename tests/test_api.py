"""
Tests for the HTTP and WebSocket endpoints
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.core.config import settings
from app.core.errors import TransientStoreError
from app.services.event_submitter import TITLE_TAKEN_MESSAGE
from app.services.repositories import get_event_store
from app.utils.security import rate_limiter
from main import app

AUTH = {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}

EVENT_PAYLOAD = {
    "title": "Spring Gala",
    "date": "2024-03-01",
    "hour": "7",
    "minute": "05",
    "meridiem": "PM",
    "timezone": "-05:00",
    "organizer_email": "host@example.com",
}

@pytest.fixture
def client(store):
    rate_limiter.clear()
    app.dependency_overrides[get_event_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()

def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_slug_preview(client):
    body = client.get("/slug", params={"title": "Happy Birthday!"}).json()
    assert body["data"]["slug"] == "happy-birthday"
    assert body["data"]["url"].endswith("/events/happy-birthday")

def test_create_event(client, store):
    store.admins["host@example.com"] = 4

    response = client.post("/admin/events", json=EVENT_PAYLOAD, headers=AUTH)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["event_title"] == "spring gala"
    assert data["event_slug"] == "spring-gala"
    assert data["admin_id"] == 4
    assert data["event_date"] == "Fri Mar 1 2024 19:05:00 -05:00"

def test_create_event_unknown_admin_uses_zero(client, store):
    response = client.post("/admin/events", json=EVENT_PAYLOAD, headers=AUTH)
    assert response.json()["data"]["admin_id"] == 0

def test_create_duplicate_title(client, seeded_store):
    payload = {**EVENT_PAYLOAD, "title": "Birthday Bash", "slug": "other-slug"}

    response = client.post("/admin/events", json=payload, headers=AUTH)

    assert response.status_code == 409
    assert response.json()["details"] == {"title": TITLE_TAKEN_MESSAGE}
    assert seeded_store.calls_to("insert_event") == []

def test_create_validation_errors(client):
    payload = {**EVENT_PAYLOAD, "hour": "13", "organizer_email": "not-an-email"}

    response = client.post("/admin/events", json=payload, headers=AUTH)

    assert response.status_code == 422
    assert set(response.json()["details"]) == {"hour", "organizer_email"}

def test_create_rejects_blank_title(client, store):
    payload = {**EVENT_PAYLOAD, "title": "   ", "slug": "abc"}

    response = client.post("/admin/events", json=payload, headers=AUTH)

    assert response.status_code == 422
    assert response.json()["details"] == {"title": "Event name must be at least 1 character."}
    assert store.calls_to("insert_event") == []
    assert store.events == {}

def test_create_when_store_down(client, store):
    store.failures["exists_by_title"] = TransientStoreError("down")

    response = client.post("/admin/events", json=EVENT_PAYLOAD, headers=AUTH)

    assert response.status_code == 503
    assert store.calls_to("insert_event") == []

def test_admin_routes_require_token(client):
    response = client.post("/admin/events", json=EVENT_PAYLOAD, headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401

def test_title_check(client, seeded_store):
    body = client.get("/admin/events/title-check", params={"title": " Birthday Bash"}, headers=AUTH).json()
    assert body["data"] == {"title": "birthday bash", "exists": True}

def test_list_and_get_events(client, seeded_store):
    listing = client.get("/events").json()["data"]
    assert [e["event_slug"] for e in listing] == ["birthday-bash"]

    event = client.get("/events/birthday-bash").json()["data"]
    assert event["event_date"] == "Fri Mar 1 2024 19:05:00 -05:00"

    assert client.get("/events/missing").status_code == 404

    photos = client.get("/events/birthday-bash/photos").json()["data"]["photos"]
    assert [p["blob_id"] for p in photos] == ["blob-1", "blob-2"]

def test_qr_code(client, seeded_store):
    response = client.get("/events/birthday-bash/qr.png")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")

def test_delete_event(client, seeded_store):
    response = client.delete("/admin/events/1", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["data"]["state"] == "done"
    assert seeded_store.events == {}

def test_delete_event_photo_failure(client, seeded_store):
    seeded_store.failures["delete_photos_for_event"] = TransientStoreError("down")

    response = client.delete("/admin/events/1", headers=AUTH)

    assert response.status_code == 503
    assert seeded_store.calls_to("delete_event") == []

def test_delete_event_partial(client, seeded_store):
    seeded_store.failures["delete_event"] = TransientStoreError("down")

    response = client.delete("/admin/events/1", headers=AUTH)

    assert response.status_code == 502
    assert response.json()["error_code"] == "partial_deletion"

def test_compose_websocket_creates_event(client, store, monkeypatch):
    monkeypatch.setattr(settings, "TITLE_CHECK_DEBOUNCE_SECONDS", 0.01)

    with client.websocket_connect(f"/ws/events/compose?token={settings.ADMIN_TOKEN}") as ws:
        assert ws.receive_json()["type"] == "state"

        ws.send_json({"type": "field", "name": "title", "value": "Spring Gala"})
        state = ws.receive_json()
        assert state["values"]["slug"] == "spring-gala"
        while state["title_check"]["pending"] or state["title_check"]["checking"]:
            state = ws.receive_json()
        assert state["title_check"]["exists"] is False

        for name, value in [("date", "2024-03-01"), ("hour", "7"), ("minute", "05"),
                            ("meridiem", "PM"), ("timezone", "-05:00")]:
            ws.send_json({"type": "field", "name": name, "value": value})
            state = ws.receive_json()
        assert state["can_submit"] is True

        ws.send_json({"type": "submit"})
        message = ws.receive_json()
        while message["type"] == "state":
            message = ws.receive_json()

    assert message["type"] == "submitted"
    assert message["event"]["event_date"] == "Fri Mar 1 2024 19:05:00 -05:00"
    assert len(store.events) == 1

def test_compose_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/events/compose?token=wrong") as ws:
            ws.receive_json()

def test_compose_websocket_survives_bad_field_name(client):
    with client.websocket_connect(f"/ws/events/compose?token={settings.ADMIN_TOKEN}") as ws:
        assert ws.receive_json()["type"] == "state"

        ws.send_json({"type": "field", "name": ["title"], "value": "Spring Gala"})
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["field_errors"] == {"name": "Field name must be a string"}

        ws.send_json({"type": "ping", "timestamp": 1})
        assert ws.receive_json() == {"type": "pong", "timestamp": 1}
