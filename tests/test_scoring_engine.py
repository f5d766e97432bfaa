"""
Integration tests for the opportunity scorer.
End-to-end scoring with realistic asset records, caching and events.
"""
from datetime import datetime, timezone

import pytest

from rwa_engine.core.config import SCORING_FACTORS
from rwa_engine.core.errors import ScoringError
from rwa_engine.schemas.asset import (
    AssetRecord, AssetType, CollateralInfo, ComplianceLevel, RegulatoryStatus, RiskRating,
)
from rwa_engine.schemas.score import Action, Impact, RecommendationRisk, Timeframe
from rwa_engine.scoring.engine import OpportunityScorer, recommend, risk_adjusted_return
from rwa_engine.services.cache import ResultCache
from rwa_engine.services.event_publisher import EventBus, RecordingSink
from rwa_engine.services.market_data import MarketDataStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_asset(**overrides) -> AssetRecord:
    """Baseline AAA real-estate asset, then override specific fields."""
    kwargs = {
        "id": "RWA-001",
        "asset_type": AssetType.REAL_ESTATE,
        "issuer": "Harbor Property Trust",
        "value": 5_000_000.0,
        "nominal_yield": 0.06,
        "risk_rating": RiskRating.AAA,
        "collateral": CollateralInfo(type="real-estate", value=6_000_000, ltv=0.4, liquidation_threshold=0.65),
        "regulatory_status": RegulatoryStatus(
            jurisdiction="US",
            compliance_level=ComplianceLevel.COMPLIANT,
            licenses=["SEC-REG-D"],
        ),
        "compliance_score": 85,
    }
    kwargs.update(overrides)
    return AssetRecord(**kwargs)


def _make_scorer(settings, clock=None, events=None) -> OpportunityScorer:
    cache = ResultCache(settings.cache_ttl_ms / 1000, clock=clock) if clock else ResultCache(300)
    return OpportunityScorer(
        settings,
        MarketDataStore(now=lambda: NOW),
        cache=cache,
        events=events,
        now=lambda: NOW,
    )


class TestScoreOutputs:
    def test_aaa_real_estate_scenario(self, settings):
        result = _make_scorer(settings).score(_make_asset())

        assert result.yield_score == pytest.approx(0.72)
        assert result.risk_score == pytest.approx(0.73125)
        assert result.liquidity_score == pytest.approx(0.2)
        assert result.regulatory_score == 1.0
        assert result.collateral_score == pytest.approx(0.9)
        assert result.market_score == pytest.approx(0.7)
        assert result.overall_score == pytest.approx(0.7028125)

        rec = result.recommendations[0]
        assert rec.action == Action.INVEST
        assert rec.timeframe == Timeframe.MEDIUM
        assert rec.risk_level == RecommendationRisk.MEDIUM
        assert rec.max_exposure == pytest.approx(250_000)

    def test_overall_is_weighted_sum(self, settings):
        result = _make_scorer(settings).score(_make_asset(risk_rating=RiskRating.BB, nominal_yield=0.11))
        expected = sum(settings.scoring_weights[k] * getattr(result, f"{k}_score") for k in SCORING_FACTORS)
        assert abs(result.overall_score - expected) < 1e-9

    def test_all_scores_bounded(self, settings):
        result = _make_scorer(settings).score(_make_asset(
            asset_type=AssetType.ART,
            nominal_yield=0.5,
            risk_rating=RiskRating.D,
            collateral=CollateralInfo(type="art", ltv=1.4, liquidation_threshold=1.0),
            regulatory_status=RegulatoryStatus(
                compliance_level=ComplianceLevel.NON_COMPLIANT,
                restrictions=["a", "b", "c", "d", "e", "f"],
            ),
        ))
        for name in (*(f"{k}_score" for k in SCORING_FACTORS), "volatility_score", "compliance_score",
                     "overall_score", "confidence"):
            assert 0.0 <= getattr(result, name) <= 1.0, name
        assert result.risk_adjusted_return >= 0.0

    def test_unknown_asset_class_uses_neutral_market(self, settings):
        result = _make_scorer(settings).score(_make_asset(asset_type=AssetType.EQUITY))
        assert result.market_score == 0.5
        assert result.volatility_score == 0.5

    def test_compliance_score_reported_as_fraction(self, settings):
        result = _make_scorer(settings).score(_make_asset(compliance_score=40))
        assert result.compliance_score == pytest.approx(0.4)

    def test_factors_ranked_by_weight_ties_in_definition_order(self, settings):
        result = _make_scorer(settings).score(_make_asset())
        assert [f.category for f in result.factors] == [
            "Yield", "Risk", "Liquidity", "Regulatory", "Collateral", "Market",
        ]
        by_category = {f.category: f for f in result.factors}
        assert by_category["Regulatory"].impact == Impact.POSITIVE
        assert by_category["Liquidity"].impact == Impact.NEGATIVE
        assert by_category["Market"].impact == Impact.POSITIVE

    def test_naive_dates_read_as_utc(self, settings):
        def status(last_review):
            return RegulatoryStatus(
                jurisdiction="US", compliance_level=ComplianceLevel.COMPLIANT, last_review=last_review,
            )

        naive = _make_asset(
            maturity_date=datetime(2031, 3, 1, 12, 0),
            regulatory_status=status(datetime(2025, 6, 1)),
        )
        aware = _make_asset(
            maturity_date=datetime(2031, 3, 1, 12, 0, tzinfo=timezone.utc),
            regulatory_status=status(datetime(2025, 6, 1, tzinfo=timezone.utc)),
        )
        assert naive.maturity_date.tzinfo == timezone.utc
        assert naive.regulatory_status.last_review.tzinfo == timezone.utc

        from_naive = _make_scorer(settings).score(naive)
        from_aware = _make_scorer(settings).score(aware)
        assert from_naive.risk_score == from_aware.risk_score
        assert from_naive.regulatory_score == from_aware.regulatory_score

    def test_missing_value_raises(self, settings):
        with pytest.raises(ScoringError):
            _make_scorer(settings).score(_make_asset(value=None))

    def test_missing_yield_raises(self, settings):
        with pytest.raises(ScoringError):
            _make_scorer(settings).score(_make_asset(nominal_yield=None))


class TestCaching:
    def test_cache_hit_returns_same_object(self, settings, clock):
        scorer = _make_scorer(settings, clock=clock)
        first = scorer.score(_make_asset())
        clock.advance(299)
        assert scorer.score(_make_asset()) is first

    def test_cache_expires_after_ttl(self, settings, clock):
        scorer = _make_scorer(settings, clock=clock)
        first = scorer.score(_make_asset())
        clock.advance(300)
        assert scorer.score(_make_asset()) is not first

    def test_cache_keyed_by_entity_id(self, settings, clock):
        scorer = _make_scorer(settings, clock=clock)
        first = scorer.score(_make_asset())
        other = scorer.score(_make_asset(id="RWA-002", nominal_yield=0.02))
        assert other is not first
        assert other.entity_id == "RWA-002"

    def test_disabled_cache_always_recomputes(self, settings, clock):
        scorer = _make_scorer(settings.model_copy(update={"cache_enabled": False}), clock=clock)
        assert scorer.score(_make_asset()) is not scorer.score(_make_asset())


class TestEvents:
    def test_event_published_for_fresh_computation_only(self, settings, clock):
        bus, sink = EventBus(), RecordingSink()
        bus.subscribe("scoring_completed", sink)
        scorer = _make_scorer(settings, clock=clock, events=bus)

        result = scorer.score(_make_asset())
        scorer.score(_make_asset())

        assert len(sink.events) == 1
        assert sink.events[0].entity_id == "RWA-001"
        assert sink.events[0].score is result

    def test_failing_subscriber_does_not_break_scoring(self, settings):
        bus = EventBus()

        def broken(event):
            raise RuntimeError("downstream offline")

        bus.subscribe("scoring_completed", broken)
        result = _make_scorer(settings, events=bus).score(_make_asset())
        assert result.entity_id == "RWA-001"


class TestRecommendationLadder:
    def test_excellent_invests_long(self):
        rec = recommend(2_000_000, 0.08, 0.85, 0.06)[0]
        assert rec.action == Action.INVEST
        assert rec.timeframe == Timeframe.LONG
        assert rec.risk_level == RecommendationRisk.LOW
        assert rec.max_exposure == pytest.approx(200_000)
        assert rec.expected_return == pytest.approx(0.08)

    def test_long_tier_exposure_capped(self):
        assert recommend(50_000_000, 0.08, 0.85, 0.06)[0].max_exposure == 1_000_000

    def test_boundary_score_falls_to_next_tier(self):
        rec = recommend(2_000_000, 0.08, 0.8, 0.06)[0]
        assert rec.action == Action.INVEST
        assert rec.timeframe == Timeframe.MEDIUM
        assert rec.max_exposure == pytest.approx(100_000)

    def test_high_score_low_return_is_monitor(self):
        rec = recommend(2_000_000, 0.03, 0.9, 0.01)[0]
        assert rec.action == Action.MONITOR
        assert rec.max_exposure == 0
        assert rec.expected_return == pytest.approx(0.024)

    def test_poor_score_avoids(self):
        rec = recommend(2_000_000, 0.03, 0.4, 0.2)[0]
        assert rec.action == Action.AVOID
        assert rec.expected_return == 0


class TestRiskAdjustedReturn:
    def test_formula(self):
        assert risk_adjusted_return(0.06, 0.8, 0.02, 1.5) == pytest.approx(0.04 / 1.2)

    def test_zero_risk_score_returns_zero(self):
        assert risk_adjusted_return(0.06, 0.0, 0.02, 1.5) == 0.0

    def test_below_risk_free_floors_at_zero(self):
        assert risk_adjusted_return(0.01, 0.8, 0.02, 1.5) == 0.0
