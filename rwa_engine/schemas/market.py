"""
Market reference data: benchmarks per asset class and institutional feed snapshots.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FeedType(str, Enum):
    MARKET = "market"
    REGULATORY = "regulatory"
    ECONOMIC = "economic"
    CREDIT = "credit"


class MarketBenchmark(BaseModel):
    model_config = {"frozen": True}

    asset_class: str
    current_yield: float
    historical_yields: list[float] = []
    volatility: float = Field(ge=0)
    liquidity: float = Field(ge=0, description="0-1 normalised, or absolute traded volume")
    market_size: float = Field(ge=0)
    growth_rate: float
    correlation: float = 0.0


class InstitutionalFeed(BaseModel):
    id: str
    name: str
    type: FeedType
    last_update: datetime
    data: dict[str, Any] = {}
