"""
Tests for the HTTP collaborators: response bodies that are not the expected
shape surface as ExternalCollaboratorError, never as a raw TypeError.
"""
from datetime import datetime, timezone

import httpx
import pytest

from rwa_engine.compliance.sources import HttpRegulatorySource
from rwa_engine.core.errors import ExternalCollaboratorError
from rwa_engine.engine import build_engine
from rwa_engine.schemas.asset import AssetRecord, AssetType, RiskRating
from rwa_engine.services.market_data import HttpMarketFeed
from rwa_engine.services.research import HttpResearchClient

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

CHANGE = {
    "id": "chg-1",
    "jurisdiction": "EU",
    "category": "general",
    "title": "Updated disclosure regime",
    "description": "New periodic disclosure requirements",
    "effective_date": "2026-06-01T00:00:00",
    "impact": "medium",
    "compliance_deadline": "2026-05-01T00:00:00",
    "source": "EU Regulatory Authority",
    "timestamp": "2026-03-01T12:00:00",
}


def _respond(monkeypatch, method: str, body):
    async def fake(self, url, **kwargs):
        return httpx.Response(200, json=body, request=httpx.Request(method.upper(), url))

    monkeypatch.setattr(httpx.AsyncClient, method, fake)


def _make_asset() -> AssetRecord:
    return AssetRecord(
        id="RWA-001",
        asset_type=AssetType.REAL_ESTATE,
        issuer="Harbor Property Trust",
        value=5_000_000,
        nominal_yield=0.06,
        risk_rating=RiskRating.AAA,
    )


class TestResearchClient:
    async def test_findings_parsed(self, monkeypatch):
        _respond(monkeypatch, "post", {"confidence": 0.8, "findings": ["Audited sponsor"]})
        findings = await HttpResearchClient("http://research.local").research_asset(_make_asset())
        assert findings.confidence == 0.8
        assert findings.findings == ["Audited sponsor"]

    async def test_list_body_is_collaborator_error(self, monkeypatch):
        _respond(monkeypatch, "post", [{"confidence": 0.9}])
        with pytest.raises(ExternalCollaboratorError):
            await HttpResearchClient("http://research.local").research_asset(_make_asset())

    async def test_list_body_falls_back_to_scorer_confidence(self, monkeypatch, engine_settings):
        _respond(monkeypatch, "post", [{"confidence": 0.9}])
        engine = build_engine(engine_settings, research=HttpResearchClient("http://research.local"), now=lambda: NOW)
        raw = engine.scorer.score(_make_asset())
        result = await engine.score_opportunity(_make_asset())
        assert result.confidence == raw.confidence
        assert result.research_findings == []


class TestMarketFeed:
    async def test_object_body_is_collaborator_error(self, monkeypatch):
        _respond(monkeypatch, "get", {"asset_class": "bonds", "current_yield": 0.04})
        with pytest.raises(ExternalCollaboratorError):
            await HttpMarketFeed("http://feed.local").fetch_benchmarks()

    async def test_benchmarks_parsed(self, monkeypatch):
        _respond(monkeypatch, "get", [{
            "asset_class": "bonds",
            "current_yield": 0.04,
            "volatility": 0.05,
            "liquidity": 0.9,
            "market_size": 1e12,
            "growth_rate": 0.03,
        }])
        benchmarks = await HttpMarketFeed("http://feed.local").fetch_benchmarks()
        assert [b.asset_class for b in benchmarks] == ["bonds"]


class TestRegulatorySource:
    async def test_object_body_is_collaborator_error(self, monkeypatch):
        _respond(monkeypatch, "get", CHANGE)
        with pytest.raises(ExternalCollaboratorError):
            await HttpRegulatorySource("http://regs.local").fetch_changes("EU")

    async def test_naive_dates_read_as_utc(self, monkeypatch):
        _respond(monkeypatch, "get", [CHANGE])
        changes = await HttpRegulatorySource("http://regs.local").fetch_changes("EU")
        assert changes[0].timestamp == NOW
        assert changes[0].compliance_deadline.tzinfo == timezone.utc
