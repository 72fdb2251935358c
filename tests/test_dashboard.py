"""Tests for the routing API endpoints."""
import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from loss_locator.dashboard import create_app
from loss_locator.errors import DependencyUnavailable
from loss_locator.main import RoutingService
from loss_locator.models import LeadStatus, LossProperty

from conftest import make_event

ADMIN = {"Authorization": "Bearer tok-admin"}
OPS = {"Authorization": "Bearer tok-ops"}
VIEWER = {"Authorization": "Bearer tok-viewer"}


@pytest.fixture
def service(store, app_config):
    store.add_user("tok-admin", "u-1", "admin@example.com", "admin")
    store.add_user("tok-ops", "u-2", "ops@example.com", "ops")
    store.add_user("tok-viewer", "u-3", "viewer@example.com", "viewer")
    return RoutingService(app_config, client=store)


@pytest.fixture
def client(service):
    app = create_app(service)
    app.testing = True
    return app.test_client()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_queue_lists_entries(client, store):
    store.add_event(make_event("evt-1"))
    store.add_entry("evt-1")

    response = client.get("/api/queue", headers=VIEWER)

    data = response.get_json()
    assert response.status_code == 200
    assert data["count"] == 1
    assert data["leads"][0]["loss_event_id"] == "evt-1"
    assert data["leads"][0]["event_type"] == "Hail"


def test_queue_rejects_unknown_status_filter(client):
    response = client.get("/api/queue?status=Closed", headers=VIEWER)
    assert response.status_code == 400
    assert response.get_json()["error"] == "VALIDATION_ERROR"


def test_queue_status_filter(client, store):
    store.add_event(make_event("evt-1"))
    store.add_event(make_event("evt-2"))
    store.add_entry("evt-1")
    store.add_entry("evt-2", status=LeadStatus.CONTACTED)

    data = client.get("/api/queue?status=Contacted", headers=VIEWER).get_json()
    assert [lead["loss_event_id"] for lead in data["leads"]] == ["evt-2"]


def test_assign_lead(client, store):
    entry = store.add_entry("evt-1")

    response = client.post(
        f"/api/queue/{entry.id}/assign",
        json={"assigned_to": "J. Rivera", "assignee_type": "adjuster-partner", "priority": "High"},
        headers=OPS,
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "Assigned"
    assert data["assigned_to"] == "J. Rivera"


def test_viewer_cannot_assign(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(
        f"/api/queue/{entry.id}/assign",
        json={"assigned_to": "J. Rivera", "assignee_type": "internal-ops", "priority": "High"},
        headers=VIEWER,
    )
    assert response.status_code == 403
    assert store.update_calls == 0


def test_anonymous_cannot_change_status(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(f"/api/queue/{entry.id}/status", json={"status": "Assigned"})
    assert response.status_code == 403


def test_non_object_body_rejected(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(f"/api/queue/{entry.id}/status", json=["Assigned"], headers=OPS)
    assert response.status_code == 400


def test_backward_status_is_conflict(client, store):
    entry = store.add_entry("evt-1", status=LeadStatus.QUALIFIED)

    response = client.post(f"/api/queue/{entry.id}/status", json={"status": "Contacted"}, headers=OPS)

    assert response.status_code == 409
    assert response.get_json()["error"] == "INVALID_TRANSITION"
    assert store.get_routing_entry(entry.id).status == LeadStatus.QUALIFIED


def test_stale_edit_is_conflict(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(
        f"/api/queue/{entry.id}/status",
        json={"status": "Assigned", "expected_updated_at": "2026-09-30T00:00:00+00:00"},
        headers=OPS,
    )
    assert response.status_code == 409
    assert response.get_json()["error"] == "CONCURRENT_MODIFICATION"


def test_bad_expected_timestamp_rejected(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(
        f"/api/queue/{entry.id}/status",
        json={"status": "Assigned", "expected_updated_at": "yesterday"},
        headers=OPS,
    )
    assert response.status_code == 400


def test_manual_admission(client, store):
    store.add_event(make_event("evt-7", severity=40, claim_probability=0.30))

    response = client.post("/api/events/evt-7/admit", headers=OPS)

    assert response.status_code == 201
    assert response.get_json()["status"] == "Unassigned"
    assert store.get_routing_entry_for_event("evt-7") is not None


def test_admit_unknown_event(client):
    response = client.post("/api/events/missing/admit", headers=OPS)
    assert response.status_code == 400


def test_settings_update_admin_only(client, store):
    denied = client.put("/api/settings", json={"min_severity": 90}, headers=OPS)
    assert denied.status_code == 403

    allowed = client.put("/api/settings", json={"min_severity": 90}, headers=ADMIN)
    assert allowed.status_code == 200
    assert allowed.get_json()["min_severity"] == 90
    assert client.get("/api/settings", headers=VIEWER).get_json()["min_severity"] == 90


def test_settings_validation(client):
    response = client.put("/api/settings", json={"min_claim_probability": 7}, headers=ADMIN)
    assert response.status_code == 400


def test_store_outage_is_503(client, store, monkeypatch):
    def fail(*args, **kwargs):
        raise DependencyUnavailable("Data store timed out")

    monkeypatch.setattr(store, "get_routing_queue", fail)
    response = client.get("/api/queue", headers=VIEWER)
    assert response.status_code == 503
    assert response.get_json()["error"] == "DEPENDENCY_UNAVAILABLE"


def test_stats_and_activity(client, store):
    entry = store.add_entry("evt-1")
    client.post(f"/api/queue/{entry.id}/status", json={"status": "Contacted"}, headers=OPS)

    stats = client.get("/api/stats", headers=VIEWER).get_json()
    activity = client.get("/api/activity", headers=VIEWER).get_json()

    assert stats["queue_size"] == 1
    assert stats["activity"]["status_changes"] == 1
    assert activity[0]["actor"] == "ops@example.com"
    assert activity[0]["status"] == "Contacted"


@pytest.mark.parametrize("path", ["/api/queue", "/api/settings", "/api/stats", "/api/activity"])
def test_reads_require_signed_in_operator(client, store, path):
    store.add_event(make_event("evt-1"))
    store.properties["evt-1"] = LossProperty(
        id="lp-1", loss_id="evt-1", address="500 Main St", owner_name="Pat Owner",
        phone_primary="214-555-0100", phone_confidence=90,
    )
    store.add_entry("evt-1")

    anonymous = client.get(path)
    unknown = client.get(path, headers={"Authorization": "Bearer nope"})
    viewer = client.get(path, headers=VIEWER)

    assert anonymous.status_code == 403
    assert "Pat Owner" not in anonymous.get_data(as_text=True)
    assert unknown.status_code == 403
    assert viewer.status_code == 200


def test_viewer_sees_owner_and_phone(client, store):
    store.add_event(make_event("evt-1"))
    store.properties["evt-1"] = LossProperty(
        id="lp-1", loss_id="evt-1", address="500 Main St", owner_name="Pat Owner",
        phone_primary="214-555-0100", phone_confidence=90,
    )
    store.add_entry("evt-1")

    lead = client.get("/api/queue", headers=VIEWER).get_json()["leads"][0]
    assert lead["owner_name"] == "Pat Owner"
    assert lead["phone"] == "214-555-0100"


def test_manual_flag_must_be_boolean(client, store):
    store.add_event(make_event("evt-7", severity=40, claim_probability=0.30))

    response = client.post("/api/events/evt-7/admit", json={"manual": "false"}, headers=OPS)

    assert response.status_code == 400
    assert store.insert_calls == 0


def test_non_manual_admit_below_threshold_rejected(client, store):
    store.add_event(make_event("evt-7", severity=40, claim_probability=0.30))
    response = client.post("/api/events/evt-7/admit", json={"manual": False}, headers=OPS)
    assert response.status_code == 400
    assert store.get_routing_entry_for_event("evt-7") is None


def test_offsetless_expected_timestamp_read_as_utc(client, store):
    entry = store.add_entry("evt-1")
    response = client.post(
        f"/api/queue/{entry.id}/status",
        json={"status": "Assigned", "expected_updated_at": "2026-10-01T12:00:00"},
        headers=OPS,
    )
    assert response.status_code == 200
    assert response.get_json()["status"] == "Assigned"
