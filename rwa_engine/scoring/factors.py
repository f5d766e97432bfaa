"""
RWA Opportunity Scoring: sub-score definitions

Each function:
  1. Takes raw inputs from the asset record and/or its market benchmark
  2. Applies a fixed threshold ladder or lookup table
  3. Returns a score clamped to [0, 1]

Weights are applied in the engine, not here.

Convention: HIGHER score = MORE attractive (lower risk, better yield).
A missing benchmark never fails a sub-score: it resolves to the
documented neutral default instead.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from rwa_engine.schemas.asset import AssetType, ComplianceLevel, RiskRating
from rwa_engine.schemas.market import MarketBenchmark

NEUTRAL_SCORE = 0.5
DEFAULT_BENCHMARK_YIELD = 0.05
ISSUER_CREDIT_PLACEHOLDER = 0.7  # no issuer credit source integrated yet
SECONDS_PER_DAY = 86_400


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _fold(acc: float, nxt: float) -> float:
    return (acc + nxt) / 2


# ═══════════════════════════════════════════════════════════════
# Lookup tables
# ═══════════════════════════════════════════════════════════════
RISK_RATING_SCORES: dict[RiskRating, float] = {
    RiskRating.AAA: 0.95,
    RiskRating.AA: 0.9,
    RiskRating.A: 0.8,
    RiskRating.BBB: 0.7,
    RiskRating.BB: 0.6,
    RiskRating.B: 0.4,
    RiskRating.CCC: 0.2,
    RiskRating.CC: 0.1,
    RiskRating.C: 0.05,
    RiskRating.D: 0.0,
}

RISK_RATING_YIELD_ADJUSTMENT: dict[RiskRating, float] = {
    RiskRating.AAA: 1.2,
    RiskRating.AA: 1.1,
    RiskRating.A: 1.0,
    RiskRating.BBB: 0.9,
    RiskRating.BB: 0.8,
    RiskRating.B: 0.7,
    RiskRating.CCC: 0.6,
    RiskRating.CC: 0.5,
    RiskRating.C: 0.4,
    RiskRating.D: 0.3,
}

COLLATERAL_TYPE_QUALITY: dict[str, float] = {
    "real-estate": 0.8,
    "government-bonds": 0.9,
    "corporate-bonds": 0.7,
    "commodities": 0.6,
    "equity": 0.5,
    "art": 0.4,
}

ASSET_TYPE_LIQUIDITY: dict[AssetType, float] = {
    AssetType.BONDS: 0.8,
    AssetType.REAL_ESTATE: 0.3,
    AssetType.COMMODITIES: 0.7,
    AssetType.EQUITY: 0.9,
    AssetType.INVOICES: 0.4,
    AssetType.LOANS: 0.5,
    AssetType.ART: 0.2,
}


def risk_rating_score(rating: Optional[RiskRating]) -> float:
    if rating is None:
        return NEUTRAL_SCORE
    return RISK_RATING_SCORES[rating]


def risk_rating_adjustment(rating: Optional[RiskRating]) -> float:
    if rating is None:
        return 1.0
    return RISK_RATING_YIELD_ADJUSTMENT[rating]


def collateral_type_quality(collateral_type: Optional[str]) -> float:
    return COLLATERAL_TYPE_QUALITY.get(collateral_type or "", NEUTRAL_SCORE)


def maturity_risk(maturity_date: datetime, now: datetime) -> float:
    """Longer maturity scores higher: less near-term rollover risk."""
    days = (maturity_date - now).total_seconds() / SECONDS_PER_DAY
    if days < 30:
        return 0.3
    if days < 365:
        return 0.5
    if days < 1825:
        return 0.7
    return 0.9


# ═══════════════════════════════════════════════════════════════
# 1. YIELD
#    Spread over the asset-class benchmark, scaled by rating.
#    The rating factor is multiplicative: a high yield on a junk
#    rating is penalised proportionally.
# ═══════════════════════════════════════════════════════════════
def score_yield(
    nominal_yield: float,
    benchmark: Optional[MarketBenchmark],
    rating: Optional[RiskRating],
) -> float:
    market_yield = benchmark.current_yield if benchmark else DEFAULT_BENCHMARK_YIELD
    spread = nominal_yield - market_yield

    score = NEUTRAL_SCORE
    if spread > 0.05:
        score += 0.3
    elif spread > 0.02:
        score += 0.2
    elif spread > 0:
        score += 0.1
    elif spread < -0.05:
        score -= 0.3
    elif spread < -0.02:
        score -= 0.2
    elif spread < 0:
        score -= 0.1

    score *= risk_rating_adjustment(rating)
    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# 2. RISK
#    Running average seeded at 0.5:
#      rating → collateral quality → issuer credit → maturity
#    Each step is (acc + next) / 2, so an input's effective weight
#    depends on its position. The fold order is part of the model.
# ═══════════════════════════════════════════════════════════════
def score_risk(
    rating: Optional[RiskRating],
    collateral_type: Optional[str],
    maturity_date: Optional[datetime],
    now: datetime,
) -> float:
    score = NEUTRAL_SCORE
    score = _fold(score, risk_rating_score(rating))
    score = _fold(score, collateral_type_quality(collateral_type))
    score = _fold(score, ISSUER_CREDIT_PLACEHOLDER)
    if maturity_date is not None:
        score = _fold(score, maturity_risk(maturity_date, now))
    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# 3. LIQUIDITY
#    Asset-type liquidity folded with benchmark liquidity
#    (normalised to 1B), then a position-size effect.
# ═══════════════════════════════════════════════════════════════
def score_liquidity(
    asset_type: AssetType,
    value: float,
    benchmark: Optional[MarketBenchmark],
) -> float:
    score = NEUTRAL_SCORE
    score = _fold(score, ASSET_TYPE_LIQUIDITY.get(asset_type, NEUTRAL_SCORE))

    if benchmark is not None:
        score = _fold(score, min(benchmark.liquidity / 1_000_000_000, 1.0))

    if value > 10_000_000:
        score *= 0.8  # large positions are harder to exit
    elif value < 100_000:
        score *= 1.2

    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# 4. REGULATORY
# ═══════════════════════════════════════════════════════════════
def score_regulatory(
    compliance_level: Optional[ComplianceLevel],
    licenses: list[str],
    restrictions: list[str],
    last_review: Optional[datetime],
    now: datetime,
) -> float:
    score = NEUTRAL_SCORE

    if compliance_level == ComplianceLevel.COMPLIANT:
        score += 0.4
    elif compliance_level == ComplianceLevel.PARTIAL:
        score += 0.1
    elif compliance_level == ComplianceLevel.NON_COMPLIANT:
        score -= 0.4

    if licenses:
        score += 0.2
    score -= 0.1 * len(restrictions)

    if last_review is not None:
        days_since_review = (now - last_review).total_seconds() / SECONDS_PER_DAY
        if days_since_review < 365:
            score += 0.1
        elif days_since_review > 1095:
            score -= 0.2

    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# 5. COLLATERAL
#    LTV bucket + liquidation buffer, then averaged with type quality.
# ═══════════════════════════════════════════════════════════════
def score_collateral(
    collateral_type: Optional[str],
    ltv: Optional[float],
    liquidation_threshold: Optional[float],
) -> float:
    score = NEUTRAL_SCORE

    if ltv is not None:
        if ltv < 0.5:
            score += 0.3
        elif ltv < 0.7:
            score += 0.1
        elif ltv > 0.9:
            score -= 0.3

        if liquidation_threshold is not None:
            if liquidation_threshold > ltv + 0.2:
                score += 0.2
            elif liquidation_threshold < ltv + 0.1:
                score -= 0.2

    score = _fold(score, collateral_type_quality(collateral_type))
    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# 6. MARKET
# ═══════════════════════════════════════════════════════════════
def score_market(benchmark: Optional[MarketBenchmark]) -> float:
    if benchmark is None:
        return NEUTRAL_SCORE

    score = NEUTRAL_SCORE

    if benchmark.growth_rate > 0.1:
        score += 0.2
    elif benchmark.growth_rate > 0.05:
        score += 0.1
    elif benchmark.growth_rate < -0.05:
        score -= 0.2

    if benchmark.market_size > 10_000_000_000:
        score += 0.1
    elif benchmark.market_size < 100_000_000:
        score -= 0.1

    if benchmark.volatility < 0.1:
        score += 0.1
    elif benchmark.volatility > 0.3:
        score -= 0.1

    return clamp(score)


# ═══════════════════════════════════════════════════════════════
# Unweighted: VOLATILITY + COMPLIANCE
# ═══════════════════════════════════════════════════════════════
def score_volatility(benchmark: Optional[MarketBenchmark]) -> float:
    if benchmark is None:
        return NEUTRAL_SCORE

    volatility = benchmark.volatility
    if volatility < 0.05:
        return 0.9
    if volatility < 0.1:
        return 0.8
    if volatility < 0.2:
        return 0.6
    if volatility < 0.3:
        return 0.4
    return 0.2


def score_compliance(compliance_score: float) -> float:
    return clamp(compliance_score / 100)
