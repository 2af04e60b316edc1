# tests/api/test_router.py
import pytest
from fastapi.testclient import TestClient

from alerting.alerting_service import AlertingService
from conftest import assessment, make_reading
from main import app, create_app


@pytest.fixture
def client(build_engine):
    engine = build_engine(
        fetched=[make_reading(0), make_reading(30)],
        classified=[assessment("high"), assessment("critical")],
        device_id="forest-1",
    )
    with TestClient(create_app(AlertingService([engine]), autostart=False)) as client:
        yield client


def test_health_endpoint():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_engines(client):
    response = client.get("/engines")
    assert response.status_code == 200
    assert response.json() == ["forest-1"]


def test_engine_status(client):
    response = client.get("/engines/forest-1")
    assert response.status_code == 200
    data = response.json()
    assert data["device_id"] == "forest-1"
    assert data["running"] is False
    assert data["gate"]["phase"] == "idle"
    assert data["settings"]["poll_interval_seconds"] == 30


def test_unknown_engine_is_404(client):
    response = client.get("/engines/nope")
    assert response.status_code == 404


def test_manual_ticks_follow_the_gate(client):
    first = client.post("/engines/forest-1/tick")
    second = client.post("/engines/forest-1/tick")

    assert first.status_code == 200
    assert first.json()["outcome"] == "suppressed"
    assert second.json()["outcome"] == "dispatched"
    assert second.json()["assessment"]["risk_level"] == "critical"

    stopped = client.post("/engines/forest-1/cue/stop")
    assert stopped.status_code == 200
    assert stopped.json()["cue_playing"] is False


def test_update_settings(client):
    response = client.patch("/engines/forest-1/settings", json={"risk_threshold": "high", "cooldown_seconds": 120})
    assert response.status_code == 200
    data = response.json()
    assert data["risk_threshold"] == "high"
    assert data["cooldown_seconds"] == 120
    assert data["required_consecutive_high_risk"] == 2

    status = client.get("/engines/forest-1").json()
    assert status["gate"]["config"]["risk_threshold"] == "high"


def test_update_settings_empty_payload(client):
    response = client.patch("/engines/forest-1/settings", json={})
    assert response.status_code == 422


@pytest.mark.parametrize("payload", [
    {"poll_interval_seconds": 0},
    {"required_consecutive_high_risk": 0},
    {"risk_threshold": "extreme"},
    {"cooldown_seconds": None},
    {"unknown_setting": 1},
])
def test_update_settings_invalid_values(client, payload):
    response = client.patch("/engines/forest-1/settings", json=payload)
    assert response.status_code == 422


def test_send_test_alert_bypasses_gate(client):
    response = client.post("/engines/forest-1/alerts/test")
    assert response.status_code == 200
    assert response.json()["risk_level"] == "high"
    assert response.json()["notification_id"] == "notif-1"

    status = client.get("/engines/forest-1").json()
    assert status["gate"]["phase"] == "idle"
    assert status["gate"]["consecutive_high_risk"] == 0


def test_send_test_alert_without_permission(client, platform):
    platform.status = platform.requested_status = "denied"

    response = client.post("/engines/forest-1/alerts/test")
    assert response.status_code == 403


def test_cancel_notifications(client, platform):
    assert client.delete("/engines/forest-1/alerts/notif-1").status_code == 204
    assert client.delete("/engines/forest-1/alerts").status_code == 204
    assert platform.cancelled == ["notif-1"]
    assert platform.cancel_all_calls == 1


def test_tick_with_broken_classifier_is_reported(client):
    client.app.state.alerting.get("forest-1").classifier.items[0] = RuntimeError("boom")

    response = client.post("/engines/forest-1/tick")
    assert response.status_code == 200
    assert response.json()["outcome"] == "classifier_failed"
