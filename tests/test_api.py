"""
Apparatus Checkout — HTTP API Tests
====================================
Tests: inspection submission, admin dashboard endpoints, error mapping, health
"""

from checkout.config import set_config
from checkout.errors import StoreError
from tests.conftest import open_defect_titles, submission_payload

RADIO = {"compartment": "Cab", "item": "Radio", "status": "missing", "notes": "not in charger"}
AXE = {"compartment": "Rear", "item": "Axe", "status": "damaged"}


# ============================================================================
# SUBMISSION
# ============================================================================

class TestSubmitInspection:

    def test_submit_creates_defects_and_log(self, client, store):
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO, AXE]))
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["result"] == {"apparatus": "Engine 1", "created": [101, 102], "commented": [], "log_id": 103}
        assert open_defect_titles(store) == [
            "[Engine 1] Cab: Radio - Missing",
            "[Engine 1] Rear: Axe - Damaged",
        ]

    def test_resubmit_comments(self, client, store):
        client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        assert resp.status_code == 200
        assert resp.json()["result"]["commented"] == [101]
        assert len(open_defect_titles(store)) == 1

    def test_invalid_json(self, client):
        resp = client.post("/api/inspections/submit", content=b"{not json",
                           headers={"Content-Type": "application/json"})
        assert resp.status_code == 400

    def test_unencodable_item(self, client, store):
        bad = {"compartment": "Cab", "item": "Hose - 1.75in", "status": "missing"}
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO, bad]))
        assert resp.status_code == 400
        assert store.all_issues() == []

    def test_unknown_apparatus(self, client, store):
        resp = client.post("/api/inspections/submit", json=submission_payload("Engine 99", defects=[RADIO]))
        assert resp.status_code == 400
        assert store.all_issues() == []

    def test_malformed_items(self, client, store):
        payload = submission_payload(defects=[RADIO])
        payload["items"] = [5]
        resp = client.post("/api/inspections/submit", json=payload)
        assert resp.status_code == 400
        assert store.all_issues() == []

    def test_missing_user(self, client):
        payload = submission_payload()
        payload["user"] = {}
        assert client.post("/api/inspections/submit", json=payload).status_code == 400

    def test_partial_failure_is_207(self, client, store):
        store.fail_on_write(2, StoreError("Validation Failed", status=422))
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO, AXE]))
        assert resp.status_code == 207
        data = resp.json()
        assert data["ok"] is False
        assert data["partial"] is True
        assert [f["item"] for f in data["succeeded"]] == ["Radio"]
        assert [f["item"] for f in data["failed"]] == ["Axe"]
        assert data["log_created"] is False
        assert data["retryable"] is False

    def test_transient_failure_retried(self, client, store):
        store.fail_on_write(1)
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        assert resp.status_code == 200
        assert len(open_defect_titles(store)) == 1

    def test_transient_failure_without_retries_is_503(self, client, store):
        set_config("submit_max_retries", 0)
        store.fail_on_write(1)
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        assert resp.status_code == 503
        assert resp.json()["retryable"] is True

    def test_auth_failure_is_502(self, client, store):
        store.fail_on_write(1, StoreError("Bad credentials", status=401, auth_failed=True))
        resp = client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        assert resp.status_code == 502
        assert resp.json()["reauthenticate"] is True


# ============================================================================
# ADMIN AUTH
# ============================================================================

class TestAdminAuth:

    def test_missing_password(self, client):
        assert client.get("/api/defects").status_code == 401

    def test_wrong_password(self, client):
        resp = client.get("/api/defects", headers={"X-Admin-Password": "guess"})
        assert resp.status_code == 401

    def test_not_configured(self, client, admin_headers):
        set_config("admin_password", "")
        assert client.get("/api/defects", headers=admin_headers).status_code == 503

    def test_submit_is_open(self, client):
        resp = client.post("/api/inspections/submit", json=submission_payload())
        assert resp.status_code == 200


# ============================================================================
# DASHBOARD
# ============================================================================

class TestDashboard:

    def test_all_defects(self, client, admin_headers):
        client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        resp = client.get("/api/defects", headers=admin_headers)
        assert resp.status_code == 200
        defects = resp.json()["defects"]
        assert len(defects) == 1
        assert defects[0]["id"] == 101
        assert defects[0]["reported_by"] == "Lt. Chen"
        assert defects[0]["notes"] == "not in charger"
        assert defects[0]["resolved"] is False

    def test_fleet_status(self, client, admin_headers):
        client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO, AXE]))
        resp = client.get("/api/defects/fleet-status", headers=admin_headers)
        assert resp.status_code == 200
        status = resp.json()["fleet_status"]
        assert status["Engine 1"] == 2
        assert status["Rescue 2"] == 0

    def test_resolve(self, client, admin_headers, store):
        client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        resp = client.post("/api/defects/101/resolve", headers=admin_headers,
                           json={"resolution_note": "Radio returned from shop"})
        assert resp.status_code == 200
        assert resp.json()["defect"]["resolved"] is True
        assert store.get_issue(101).state == "closed"
        assert "**Resolved By:** Chief Ortiz" in store.comments(101)[-1]

        again = client.post("/api/defects/101/resolve", headers=admin_headers,
                            json={"resolution_note": "again"})
        assert again.status_code == 409

    def test_resolve_requires_note(self, client, admin_headers):
        client.post("/api/inspections/submit", json=submission_payload(defects=[RADIO]))
        resp = client.post("/api/defects/101/resolve", headers=admin_headers, json={})
        assert resp.status_code == 400

    def test_resolve_unknown(self, client, admin_headers):
        resp = client.post("/api/defects/999/resolve", headers=admin_headers, json={"note": "n/a"})
        assert resp.status_code == 404

    def test_daily_submissions(self, client, admin_headers):
        client.post("/api/inspections/submit", json=submission_payload("Ladder 1"))
        resp = client.get("/api/inspections/daily", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["today"] == ["Ladder 1"]
        assert data["totals"]["Ladder 1"] == 1
        assert data["totals"]["Engine 1"] == 0
        assert data["last_submission"] == {"Ladder 1": "10/1/2026"}

    def test_inspection_logs(self, client, admin_headers):
        client.post("/api/inspections/submit", json=submission_payload(defects=[AXE]))
        resp = client.get("/api/inspections/logs?days=7", headers=admin_headers)
        assert resp.status_code == 200
        logs = resp.json()["logs"]
        assert len(logs) == 1
        assert logs[0]["conducted_by"] == "Lt. Chen"
        assert logs[0]["issues_found"] == 1
        assert logs[0]["defects"] == [{"compartment": "Rear", "item": "Axe", "status": "damaged"}]

    def test_inspection_logs_days_validated(self, client, admin_headers):
        assert client.get("/api/inspections/logs?days=0", headers=admin_headers).status_code == 422

    def test_low_stock(self, client, admin_headers):
        flashlight = {"compartment": "Cab", "item": "Flashlight", "status": "missing"}
        for unit in ("Engine 1", "Engine 2", "Rescue 1"):
            client.post("/api/inspections/submit", json=submission_payload(unit, defects=[flashlight]))
        resp = client.get("/api/analytics/low-stock", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["items"] == [{
            "compartment": "Cab",
            "item": "Flashlight",
            "apparatus": ["Engine 1", "Engine 2", "Rescue 1"],
            "occurrences": 3,
        }]


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["store"] == "memory"
        assert data["admin_password_configured"] is True
