"""
HTTP surface tests through the FastAPI app and its lifespan.
"""
import pytest
from fastapi.testclient import TestClient

from rwa_engine.core.auth import roles_from_claims, verify_token
from rwa_engine.core.config import get_settings

RWA_DATA = {
    "id": "RWA-US",
    "asset_type": "real-estate",
    "issuer": "Harbor Property Trust",
    "value": 5_000_000,
    "nominal_yield": 0.06,
    "risk_rating": "AAA",
    "collateral": {"type": "real-estate", "ltv": 0.4, "liquidation_threshold": 0.65},
    "regulatory_status": {"jurisdiction": "US", "compliance_level": "compliant", "licenses": ["SEC-REG-D"]},
    "compliance_score": 85,
}

NEW_RULE = {
    "id": "us-custody-rule-1",
    "jurisdiction": "US",
    "category": "custody",
    "rule": "Qualified Custodian Requirement",
    "severity": "high",
    "description": "Client assets must be held by a qualified custodian",
    "requirements": ["Custody agreement"],
}


def _client(monkeypatch, **env):
    base = {
        "AUTH_ENABLED": "false",
        "AUDIT_ENABLED": "false",
        "KAFKA_ENABLED": "false",
        "SCHEDULER_ENABLED": "false",
        "REGULATORY_CHANGE_PROBABILITY": "1.0",
        "ALERT_CHANNELS": '[{"type": "slack", "recipients": ["#compliance-alerts"], "severity": "high"}]',
    }
    for key, value in {**base, **env}.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    from rwa_engine.main import app
    return TestClient(app)


@pytest.fixture
def client(monkeypatch):
    with _client(monkeypatch) as c:
        yield c
    get_settings.cache_clear()


class TestHealth:
    def test_health(self, client):
        resp = client.get("/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_status(self, client):
        body = client.get("/v1/status").json()
        assert body["running"] is True
        assert body["compliance"]["rules_count"] == 7


class TestOpportunities:
    def test_score(self, client):
        resp = client.post("/v1/opportunities/score", json=RWA_DATA)
        assert resp.status_code == 200
        body = resp.json()
        assert body["overall_score"] == pytest.approx(0.7028125)
        assert body["compliance_score"] == 1.0
        assert body["recommendations"][0]["action"] == "invest"

    def test_naive_maturity_and_review_dates(self, client):
        payload = {
            **RWA_DATA,
            "maturity_date": "2031-03-01T00:00:00",
            "regulatory_status": {**RWA_DATA["regulatory_status"], "last_review": "2026-01-15T00:00:00"},
        }
        resp = client.post("/v1/opportunities/score", json=payload)
        assert resp.status_code == 200
        assert 0.0 <= resp.json()["overall_score"] <= 1.0

    def test_missing_value_is_unprocessable(self, client):
        resp = client.post("/v1/opportunities/score", json={**RWA_DATA, "value": None})
        assert resp.status_code == 422
        assert resp.json()["detail"]["entity_id"] == "RWA-US"


class TestCompliance:
    def test_assess_then_read_back(self, client):
        eu = {**RWA_DATA, "id": "RWA-EU", "regulatory_status": {"jurisdiction": "EU"}}
        resp = client.post("/v1/compliance/assess/rwa", json=eu)
        assert resp.status_code == 200
        assert resp.json()["compliance_level"] == "non-compliant"

        assert client.get("/v1/compliance/assessments/RWA-EU").json()["risk_level"] == "medium"
        assert len(client.get("/v1/compliance/violations/RWA-EU").json()) == 1
        assert client.get("/v1/compliance/assessments/RWA-XX").status_code == 404

    def test_assess_protocol(self, client):
        resp = client.post("/v1/compliance/assess/protocol", json={"id": "proto-1", "name": "Lendr"})
        assert resp.json()["jurisdiction"] == "US"

    def test_report(self, client):
        client.post("/v1/compliance/assess/rwa", json=RWA_DATA)
        body = client.get("/v1/compliance/report", params={"jurisdiction": "US"}).json()
        assert body["summary"]["total"] == 1
        assert body["summary"]["compliance_rate"] == 100.0

    def test_report_with_naive_bounds(self, client):
        client.post("/v1/compliance/assess/rwa", json=RWA_DATA)
        resp = client.get(
            "/v1/compliance/report",
            params={"start": "2000-01-01T00:00:00", "end": "2100-01-01T00:00:00"},
        )
        assert resp.status_code == 200
        assert resp.json()["summary"]["total"] == 1

    def test_report_needs_both_bounds(self, client):
        resp = client.get("/v1/compliance/report", params={"start": "2026-01-01T00:00:00Z"})
        assert resp.status_code == 400

    def test_poll_then_list_changes(self, client):
        resp = client.post("/v1/admin/poll-regulatory-changes")
        assert resp.status_code == 200
        assert len(resp.json()["job_result"]["change_ids"]) == 5

        changes = client.get("/v1/compliance/regulatory-changes", params={"jurisdiction": "EU"}).json()
        assert [c["jurisdiction"] for c in changes] == ["EU"]


class TestAdmin:
    def test_rule_crud(self, client):
        assert len(client.get("/v1/admin/rules", params={"jurisdiction": "US"}).json()) == 2

        assert client.post("/v1/admin/rules", json=NEW_RULE).status_code == 201
        assert client.post("/v1/admin/rules", json=NEW_RULE).status_code == 409

        assert client.put("/v1/admin/rules/us-custody-rule-1", json={}).status_code == 400
        resp = client.put("/v1/admin/rules/us-custody-rule-1", json={"severity": "low"})
        assert resp.json()["severity"] == "low"
        assert client.put("/v1/admin/rules/missing", json={"severity": "low"}).status_code == 404

        assert client.delete("/v1/admin/rules/us-custody-rule-1").status_code == 200
        assert client.delete("/v1/admin/rules/us-custody-rule-1").status_code == 404

    def test_refresh_market_data(self, client):
        resp = client.post("/v1/admin/refresh-market-data")
        assert resp.status_code == 200
        assert resp.json()["job_result"]["benchmarks_total"] == 3


class TestAuth:
    def test_protected_route_requires_token(self, monkeypatch):
        with _client(monkeypatch, AUTH_ENABLED="true") as c:
            assert c.get("/v1/health").status_code == 200
            assert c.get("/v1/status").status_code == 401
        get_settings.cache_clear()

    def test_admin_routes_need_admin_role(self, client):
        client.app.dependency_overrides[verify_token] = lambda: {"sub": "analyst", "realm_access": {"roles": ["viewer"]}}
        try:
            assert client.get("/v1/admin/rules").status_code == 403
            assert client.post("/v1/compliance/assess/protocol", json={"id": "p", "name": "Lendr"}).status_code == 200
        finally:
            client.app.dependency_overrides.clear()

    def test_roles_from_realm_and_client(self):
        claims = {
            "realm_access": {"roles": ["viewer"]},
            "resource_access": {"rwa-engine": {"roles": ["rwa-engine-admin"]}, "other": {"roles": ["x"]}},
        }
        assert roles_from_claims(claims, "rwa-engine") == {"viewer", "rwa-engine-admin"}
        assert roles_from_claims({}, "rwa-engine") == set()
