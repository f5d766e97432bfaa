"""
RWA Opportunity Scoring Engine

Orchestrates:
  1. Benchmark lookup (neutral defaults when the asset class is unknown)
  2. All 6 weighted sub-scores + volatility / compliance
  3. Risk-adjusted return
  4. Weighted overall score
  5. Ranked factors + recommendation ladder
  6. Confidence

Results are cached per entity id for the configured TTL and a
scoring_completed event is published for every fresh computation.
"""
from __future__ import annotations

import statistics
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from rwa_engine.core.config import SCORING_FACTORS, Settings
from rwa_engine.core.errors import ScoringError
from rwa_engine.schemas.asset import AssetRecord
from rwa_engine.schemas.events import ScoringCompleted
from rwa_engine.schemas.score import (
    Action,
    Impact,
    Recommendation,
    RecommendationRisk,
    ScoreResult,
    ScoringFactor,
    Timeframe,
)
from rwa_engine.scoring import factors
from rwa_engine.services import metrics
from rwa_engine.services.cache import ResultCache
from rwa_engine.services.event_publisher import EventSink
from rwa_engine.services.market_data import MarketDataStore

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Factor presentation
#   (category label, description, positive above, negative below)
# ═══════════════════════════════════════════════════════════════
FACTOR_PRESENTATION: dict[str, tuple[str, str, float, float]] = {
    "yield": ("Yield", "Return potential relative to market", 0.6, 0.4),
    "risk": ("Risk", "Credit and default risk assessment", 0.7, 0.3),
    "liquidity": ("Liquidity", "Market liquidity and exit potential", 0.6, 0.4),
    "regulatory": ("Regulatory", "Regulatory compliance and oversight", 0.7, 0.3),
    "collateral": ("Collateral", "Collateral quality and coverage", 0.6, 0.4),
    "market": ("Market", "Market conditions and growth potential", 0.6, 0.4),
}


def _impact(score: float, positive_above: float, negative_below: float) -> Impact:
    if score > positive_above:
        return Impact.POSITIVE
    if score < negative_below:
        return Impact.NEGATIVE
    return Impact.NEUTRAL


def build_factors(sub_scores: dict[str, float], weights: dict[str, float]) -> list[ScoringFactor]:
    """One factor per weighted sub-score, heaviest weight first (ties keep definition order)."""
    ranked = [
        ScoringFactor(
            category=label,
            score=sub_scores[key],
            weight=weights[key],
            description=description,
            impact=_impact(sub_scores[key], pos, neg),
        )
        for key, (label, description, pos, neg) in FACTOR_PRESENTATION.items()
    ]
    return sorted(ranked, key=lambda f: f.weight, reverse=True)


# ═══════════════════════════════════════════════════════════════
# Return + ladder
# ═══════════════════════════════════════════════════════════════

def risk_adjusted_return(
    nominal_yield: float,
    risk_score: float,
    risk_free_rate: float,
    risk_adjustment_factor: float,
) -> float:
    denominator = risk_score * risk_adjustment_factor
    if denominator == 0:
        return 0.0
    return max(0.0, (nominal_yield - risk_free_rate) / denominator)


def recommend(value: float, nominal_yield: float, overall_score: float, rar: float) -> list[Recommendation]:
    """
    Four-tier ladder on (overall score, risk-adjusted return):
      score > 0.8 and RAR > 0.05  → invest / long   (10% of value, max 1M)
      score > 0.6 and RAR > 0.02  → invest / medium (5% of value, max 500K)
      score > 0.4                 → monitor / short
      else                        → avoid / short
    """
    if overall_score > 0.8 and rar > 0.05:
        rec = Recommendation(
            action=Action.INVEST,
            confidence=overall_score,
            reasoning="Excellent fundamentals with strong risk-adjusted returns",
            timeframe=Timeframe.LONG,
            risk_level=RecommendationRisk.LOW,
            expected_return=nominal_yield,
            max_exposure=min(value * 0.1, 1_000_000),
        )
    elif overall_score > 0.6 and rar > 0.02:
        rec = Recommendation(
            action=Action.INVEST,
            confidence=overall_score,
            reasoning="Good fundamentals with acceptable risk-adjusted returns",
            timeframe=Timeframe.MEDIUM,
            risk_level=RecommendationRisk.MEDIUM,
            expected_return=nominal_yield,
            max_exposure=min(value * 0.05, 500_000),
        )
    elif overall_score > 0.4:
        rec = Recommendation(
            action=Action.MONITOR,
            confidence=overall_score,
            reasoning="Mixed fundamentals, monitor for improvements",
            timeframe=Timeframe.SHORT,
            risk_level=RecommendationRisk.HIGH,
            expected_return=nominal_yield * 0.8,
            max_exposure=0,
        )
    else:
        rec = Recommendation(
            action=Action.AVOID,
            confidence=overall_score,
            reasoning="Poor fundamentals across multiple metrics",
            timeframe=Timeframe.SHORT,
            risk_level=RecommendationRisk.HIGH,
            expected_return=0,
            max_exposure=0,
        )
    return [rec]


def data_completeness(asset: AssetRecord) -> float:
    fields = (
        asset.nominal_yield,
        asset.value,
        asset.risk_rating,
        asset.collateral.type,
        asset.regulatory_status.compliance_level,
    )
    return sum(1 for f in fields if f is not None) / len(fields)


def confidence(asset: AssetRecord, ranked: list[ScoringFactor]) -> float:
    consistency = max(0.0, 1 - statistics.pstdev(f.score for f in ranked))
    return min(1.0, 0.5 + 0.3 * data_completeness(asset) + 0.2 * consistency)


# ═══════════════════════════════════════════════════════════════
# Scorer
# ═══════════════════════════════════════════════════════════════

class OpportunityScorer:
    def __init__(
        self,
        settings: Settings,
        market_data: MarketDataStore,
        cache: Optional[ResultCache[ScoreResult]] = None,
        events: Optional[EventSink] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings
        self.market_data = market_data
        self.cache = cache if settings.cache_enabled else None
        self.events = events
        self._now = now

    def score(self, asset: AssetRecord) -> ScoreResult:
        """
        Main scoring entry point. Returns the cached result while it is
        within TTL; otherwise recomputes.
        """
        if self.cache is not None:
            cached = self.cache.get(asset.id)
            if cached is not None:
                metrics.SCORING_TOTAL.labels(outcome="cache_hit").inc()
                logger.debug("opportunity_score_cache_hit", entity_id=asset.id)
                return cached

        if asset.value is None or asset.nominal_yield is None:
            metrics.SCORING_TOTAL.labels(outcome="error").inc()
            raise ScoringError(
                "value and nominal_yield are required for scoring",
                {"entity_id": asset.id, "value": asset.value, "nominal_yield": asset.nominal_yield},
            )

        t0 = time.perf_counter()
        now = self._now()
        benchmark = self.market_data.get(asset.asset_type.value)
        collateral = asset.collateral
        regulatory = asset.regulatory_status

        # ── Step 1: Sub-scores ──
        sub_scores = {
            "yield": factors.score_yield(asset.nominal_yield, benchmark, asset.risk_rating),
            "risk": factors.score_risk(asset.risk_rating, collateral.type, asset.maturity_date, now),
            "liquidity": factors.score_liquidity(asset.asset_type, asset.value, benchmark),
            "regulatory": factors.score_regulatory(
                regulatory.compliance_level,
                regulatory.licenses,
                regulatory.restrictions,
                regulatory.last_review,
                now,
            ),
            "collateral": factors.score_collateral(collateral.type, collateral.ltv, collateral.liquidation_threshold),
            "market": factors.score_market(benchmark),
        }

        # ── Step 2: Risk-adjusted return ──
        rar = risk_adjusted_return(
            asset.nominal_yield,
            sub_scores["risk"],
            self.settings.risk_free_rate,
            self.settings.risk_adjustment_factor,
        )

        # ── Step 3: Overall (convex combination) ──
        weights = self.settings.scoring_weights
        overall = factors.clamp(sum(weights[k] * sub_scores[k] for k in SCORING_FACTORS))

        # ── Step 4: Factors, recommendations, confidence ──
        ranked = build_factors(sub_scores, weights)
        result = ScoreResult(
            entity_id=asset.id,
            timestamp=now,
            yield_score=sub_scores["yield"],
            risk_score=sub_scores["risk"],
            liquidity_score=sub_scores["liquidity"],
            regulatory_score=sub_scores["regulatory"],
            collateral_score=sub_scores["collateral"],
            market_score=sub_scores["market"],
            volatility_score=factors.score_volatility(benchmark),
            compliance_score=factors.score_compliance(asset.compliance_score),
            overall_score=overall,
            risk_adjusted_return=rar,
            factors=ranked,
            recommendations=recommend(asset.value, asset.nominal_yield, overall, rar),
            confidence=confidence(asset, ranked),
        )

        if self.cache is not None:
            self.cache.put(asset.id, result)

        elapsed = time.perf_counter() - t0
        metrics.SCORING_TOTAL.labels(outcome="computed").inc()
        metrics.SCORING_LATENCY.observe(elapsed)
        metrics.OVERALL_SCORE.observe(overall)

        if self.events is not None:
            self.events.publish(ScoringCompleted(entity_id=asset.id, score=result, timestamp=now))

        logger.info(
            "opportunity_scoring_complete",
            entity_id=asset.id,
            asset_type=asset.asset_type.value,
            benchmark_found=benchmark is not None,
            overall_score=round(overall, 4),
            risk_adjusted_return=round(rar, 4),
            action=result.recommendations[0].action.value,
            elapsed_ms=int(elapsed * 1000),
        )
        return result
