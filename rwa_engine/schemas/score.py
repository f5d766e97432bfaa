"""
Opportunity score returned to the caller.

The six weighted sub-scores feed overall_score; volatility_score and
compliance_score are reported alongside but carry no weight.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Impact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Action(str, Enum):
    INVEST = "invest"
    HOLD = "hold"
    AVOID = "avoid"
    MONITOR = "monitor"


class Timeframe(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class RecommendationRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScoringFactor(BaseModel):
    """Individual sub-score contribution, ranked by weight."""
    model_config = {"frozen": True}

    category: str
    score: float = Field(ge=0, le=1)
    weight: float
    description: str
    impact: Impact


class Recommendation(BaseModel):
    model_config = {"frozen": True}

    action: Action
    confidence: float
    reasoning: str
    timeframe: Timeframe
    risk_level: RecommendationRisk
    expected_return: float
    max_exposure: float = Field(description="Absolute exposure cap in asset currency")


class ScoreResult(BaseModel):
    model_config = {"frozen": True}

    entity_id: str
    timestamp: datetime

    # ── Weighted sub-scores ──
    yield_score: float = Field(ge=0, le=1)
    risk_score: float = Field(ge=0, le=1)
    liquidity_score: float = Field(ge=0, le=1)
    regulatory_score: float = Field(ge=0, le=1)
    collateral_score: float = Field(ge=0, le=1)
    market_score: float = Field(ge=0, le=1)

    # ── Reported, unweighted ──
    volatility_score: float = Field(ge=0, le=1)
    compliance_score: float = Field(ge=0, le=1)

    # ── Primary outputs ──
    overall_score: float = Field(ge=0, le=1)
    risk_adjusted_return: float = Field(ge=0)
    factors: list[ScoringFactor]
    recommendations: list[Recommendation]
    confidence: float = Field(ge=0, le=1)
    research_findings: list[str] = []
