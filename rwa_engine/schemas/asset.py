"""
Inbound entity records.

The router / HTTP caller sends the full asset or protocol record with every
call; the engine never fetches entity data itself. Records are frozen: the
scorer and assessor read them, never mutate them.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def as_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are read as UTC."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class AssetType(str, Enum):
    REAL_ESTATE = "real-estate"
    COMMODITIES = "commodities"
    BONDS = "bonds"
    EQUITY = "equity"
    INVOICES = "invoices"
    LOANS = "loans"
    ART = "art"
    OTHER = "other"


class RiskRating(str, Enum):
    AAA = "AAA"
    AA = "AA"
    A = "A"
    BBB = "BBB"
    BB = "BB"
    B = "B"
    CCC = "CCC"
    CC = "CC"
    C = "C"
    D = "D"


class ComplianceLevel(str, Enum):
    COMPLIANT = "compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non-compliant"


class EntityType(str, Enum):
    PROTOCOL = "protocol"
    RWA = "rwa"


# ── Sub-models ──

class CollateralInfo(BaseModel):
    """Collateral backing the asset. Every field may be missing."""
    model_config = {"frozen": True}

    type: Optional[str] = Field(None, description="real-estate | government-bonds | corporate-bonds | ...")
    value: Optional[float] = Field(None, ge=0)
    ltv: Optional[float] = Field(None, ge=0, description="Loan-to-value ratio, 0-1+")
    liquidation_threshold: Optional[float] = Field(None, ge=0)


class RegulatoryStatus(BaseModel):
    model_config = {"frozen": True}

    jurisdiction: str = "US"
    compliance_level: Optional[ComplianceLevel] = None
    licenses: list[str] = []
    restrictions: list[str] = []
    last_review: Optional[datetime] = None

    @field_validator("last_review")
    @classmethod
    def last_review_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


# ── Top-level records ──

class AssetRecord(BaseModel):
    """
    Real-world asset submitted for scoring and compliance assessment.

    value and nominal_yield are optional at the schema level so that a
    partial record can still be assessed; scoring requires both.
    """
    model_config = {"frozen": True}

    id: str
    asset_type: AssetType
    issuer: str
    value: Optional[float] = Field(None, ge=0, description="Monetary value in `currency`")
    currency: str = "USD"
    maturity_date: Optional[datetime] = None
    nominal_yield: Optional[float] = Field(None, description="Annual yield as a fraction, 0.06 = 6%")
    risk_rating: Optional[RiskRating] = None
    collateral: CollateralInfo = CollateralInfo()
    regulatory_status: RegulatoryStatus = RegulatoryStatus()
    compliance_score: float = Field(50.0, ge=0, le=100)

    @field_validator("maturity_date")
    @classmethod
    def maturity_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ProtocolRecord(BaseModel):
    """On-chain protocol submitted for compliance assessment only."""
    model_config = {"frozen": True}

    id: str
    name: str
    jurisdiction: Optional[str] = None
    category: Optional[str] = None
    tvl: Optional[float] = Field(None, ge=0)
    chains: list[str] = []
