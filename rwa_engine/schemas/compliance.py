"""
Compliance catalog, assessment and reporting payloads.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from rwa_engine.schemas.asset import ComplianceLevel, EntityType, as_utc


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class ViolationStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    MITIGATED = "mitigated"


class RemediationImpact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChannelType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    WEBHOOK = "webhook"
    SMS = "sms"


# ── Catalog ──

class ComplianceRule(BaseModel):
    model_config = {"frozen": True}

    id: str
    jurisdiction: str
    category: str
    rule: str
    severity: Severity
    description: str
    requirements: list[str] = []
    last_updated: datetime


class RuleCreate(BaseModel):
    id: str
    jurisdiction: str
    category: str
    rule: str
    severity: Severity
    description: str
    requirements: list[str] = []


class RuleUpdate(BaseModel):
    jurisdiction: Optional[str] = None
    category: Optional[str] = None
    rule: Optional[str] = None
    severity: Optional[Severity] = None
    description: Optional[str] = None
    requirements: Optional[list[str]] = None


# ── Assessment ──

class Violation(BaseModel):
    model_config = {"frozen": True}

    rule_id: str
    entity_id: str
    severity: Severity
    description: str
    detected_at: datetime
    status: ViolationStatus = ViolationStatus.OPEN
    remediation: str


class ComplianceRecommendation(BaseModel):
    model_config = {"frozen": True}

    priority: Severity
    category: str
    description: str
    action: str
    deadline: datetime
    estimated_cost: float
    impact: RemediationImpact


class ComplianceAssessment(BaseModel):
    model_config = {"frozen": True}

    entity_id: str
    entity_type: EntityType
    jurisdiction: str
    timestamp: datetime
    overall_score: float = Field(ge=0, le=1, description="Fraction of applicable rules passed")
    compliance_level: ComplianceLevel
    violations: list[Violation]
    recommendations: list[ComplianceRecommendation]
    risk_level: Severity
    last_review: datetime
    next_review: datetime


class RegulatoryChange(BaseModel):
    """Append-only record of a detected regulatory change."""
    model_config = {"frozen": True}

    id: str
    jurisdiction: str
    category: str
    title: str
    description: str
    effective_date: datetime
    impact: Severity
    affected_entities: list[str] = []
    requirements: list[str] = []
    compliance_deadline: datetime
    source: str
    timestamp: datetime

    @field_validator("effective_date", "compliance_deadline", "timestamp")
    @classmethod
    def dates_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


# ── Alerting ──

class AlertChannelConfig(BaseModel):
    type: ChannelType
    recipients: list[str]
    severity: Severity = Field(description="Minimum assessment risk level that triggers this channel")
    enabled: bool = True
    template: str = "compliance_alert"


# ── Reporting ──

class TimeRange(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def bounds_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ComplianceSummary(BaseModel):
    total: int
    compliant: int
    partial: int
    non_compliant: int
    compliance_rate: float = Field(description="Percent of assessments that are compliant")
    average_score: float


class ViolationSummary(BaseModel):
    total: int
    by_severity: dict[Severity, int]
    open: int
    resolved: int


class ComplianceTrend(BaseModel):
    trend: str = Field(description="improving | declining | stable")
    change_rate: float


class ComplianceReport(BaseModel):
    timestamp: datetime
    summary: ComplianceSummary
    assessments: list[ComplianceAssessment]
    violations: ViolationSummary
    trends: ComplianceTrend
    recommendations: list[ComplianceRecommendation]
