"""
Unit tests for individual opportunity sub-scores.
"""
from datetime import datetime, timedelta, timezone

import pytest

from rwa_engine.schemas.asset import AssetType, ComplianceLevel, RiskRating
from rwa_engine.schemas.market import MarketBenchmark
from rwa_engine.scoring.factors import (
    maturity_risk,
    risk_rating_score,
    score_collateral,
    score_compliance,
    score_liquidity,
    score_market,
    score_regulatory,
    score_risk,
    score_volatility,
    score_yield,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_benchmark(**overrides) -> MarketBenchmark:
    kwargs = {
        "asset_class": "real-estate",
        "current_yield": 0.045,
        "historical_yields": [0.04, 0.045],
        "volatility": 0.12,
        "liquidity": 0.3,
        "market_size": 50_000_000_000,
        "growth_rate": 0.08,
        "correlation": 0.3,
    }
    kwargs.update(overrides)
    return MarketBenchmark(**kwargs)


class TestYield:
    def test_small_positive_spread_with_aaa(self):
        # spread 1.5% → 0.6, × 1.2 for AAA
        assert score_yield(0.06, _make_benchmark(), RiskRating.AAA) == pytest.approx(0.72)

    def test_large_spread_is_clamped(self):
        assert score_yield(0.20, _make_benchmark(), RiskRating.AAA) == pytest.approx(0.96)
        assert score_yield(0.20, _make_benchmark(), None) == pytest.approx(0.8)

    def test_junk_rating_penalised_multiplicatively(self):
        # same +0.3 spread bucket, D rating → 0.8 × 0.3
        assert score_yield(0.20, _make_benchmark(), RiskRating.D) == pytest.approx(0.24)

    def test_negative_spread(self):
        assert score_yield(0.0, _make_benchmark(), RiskRating.A) == pytest.approx(0.3)

    def test_no_benchmark_uses_five_percent(self):
        # 6% vs default 5% → +0.1
        assert score_yield(0.06, None, None) == pytest.approx(0.6)
        assert score_yield(0.05, None, None) == pytest.approx(0.5)


class TestRisk:
    def test_fold_order_without_maturity(self):
        # 0.5 → AAA 0.95 → real-estate 0.8 → issuer 0.7
        assert score_risk(RiskRating.AAA, "real-estate", None, NOW) == pytest.approx(0.73125)

    def test_fold_order_with_long_maturity(self):
        maturity = NOW + timedelta(days=3650)
        assert score_risk(RiskRating.AAA, "real-estate", maturity, NOW) == pytest.approx((0.73125 + 0.9) / 2)

    def test_rating_d_scores_zero_not_neutral(self):
        assert risk_rating_score(RiskRating.D) == 0.0
        assert risk_rating_score(None) == 0.5

    def test_fold_weights_latest_input_most(self):
        # 0.5 → CCC 0.2 → government-bonds 0.9 → issuer 0.7
        assert score_risk(RiskRating.CCC, "government-bonds", None, NOW) == pytest.approx(0.6625)


class TestMaturity:
    def test_buckets(self):
        assert maturity_risk(NOW + timedelta(days=10), NOW) == 0.3
        assert maturity_risk(NOW + timedelta(days=200), NOW) == 0.5
        assert maturity_risk(NOW + timedelta(days=1000), NOW) == 0.7
        assert maturity_risk(NOW + timedelta(days=2000), NOW) == 0.9

    def test_past_maturity_is_shortest_bucket(self):
        assert maturity_risk(NOW - timedelta(days=5), NOW) == 0.3


class TestLiquidity:
    def test_real_estate_with_benchmark(self):
        # (0.5+0.3)/2 = 0.4, then averaged with 0.3/1e9 ≈ 0
        assert score_liquidity(AssetType.REAL_ESTATE, 5_000_000, _make_benchmark()) == pytest.approx(0.2)

    def test_large_position_haircut(self):
        assert score_liquidity(AssetType.EQUITY, 50_000_000, None) == pytest.approx(0.7 * 0.8)

    def test_small_position_boost(self):
        assert score_liquidity(AssetType.EQUITY, 50_000, None) == pytest.approx(0.7 * 1.2)

    def test_other_asset_type_neutral(self):
        assert score_liquidity(AssetType.OTHER, 1_000_000, None) == pytest.approx(0.5)


class TestRegulatory:
    def test_compliant_licensed_recent_review_clamps(self):
        score = score_regulatory(ComplianceLevel.COMPLIANT, ["SEC"], [], NOW - timedelta(days=30), NOW)
        assert score == 1.0

    def test_restrictions_subtract(self):
        score = score_regulatory(ComplianceLevel.PARTIAL, [], ["no-us", "accredited-only"], None, NOW)
        assert score == pytest.approx(0.4)

    def test_stale_review(self):
        score = score_regulatory(None, [], [], NOW - timedelta(days=1200), NOW)
        assert score == pytest.approx(0.3)

    def test_non_compliant_floor(self):
        score = score_regulatory(ComplianceLevel.NON_COMPLIANT, [], ["a", "b"], NOW - timedelta(days=2000), NOW)
        assert score == 0.0


class TestCollateral:
    def test_low_ltv_wide_buffer(self):
        # 0.5 + 0.3 + 0.2 = 1.0, averaged with real-estate 0.8
        assert score_collateral("real-estate", 0.4, 0.65) == pytest.approx(0.9)

    def test_high_ltv_thin_buffer(self):
        # 0.5 - 0.3 - 0.2 = 0.0, averaged with art 0.4
        assert score_collateral("art", 0.95, 1.0) == pytest.approx(0.2)

    def test_missing_ltv_skips_ltv_steps(self):
        assert score_collateral(None, None, 0.8) == pytest.approx(0.5)

    def test_missing_threshold_keeps_ltv_bucket(self):
        assert score_collateral("government-bonds", 0.6, None) == pytest.approx((0.6 + 0.9) / 2)


class TestMarketAndVolatility:
    def test_no_benchmark_neutral(self):
        assert score_market(None) == 0.5
        assert score_volatility(None) == 0.5

    def test_growing_large_calm_market(self):
        b = _make_benchmark(growth_rate=0.15, market_size=20_000_000_000, volatility=0.05)
        assert score_market(b) == pytest.approx(0.9)

    def test_shrinking_small_volatile_market(self):
        b = _make_benchmark(growth_rate=-0.1, market_size=50_000_000, volatility=0.4)
        assert score_market(b) == pytest.approx(0.1)

    @pytest.mark.parametrize("volatility,expected", [
        (0.01, 0.9), (0.08, 0.8), (0.12, 0.6), (0.25, 0.4), (0.5, 0.2),
    ])
    def test_volatility_ladder(self, volatility, expected):
        assert score_volatility(_make_benchmark(volatility=volatility)) == expected


class TestCompliance:
    def test_percent_to_fraction(self):
        assert score_compliance(85) == pytest.approx(0.85)
        assert score_compliance(0) == 0.0
        assert score_compliance(100) == 1.0
