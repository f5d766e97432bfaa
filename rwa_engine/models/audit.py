"""
Persistent audit tables: every served score and assessment is stored.
Schema: rwa_engine.opportunity_score_audit, rwa_engine.compliance_assessment_audit
"""
from datetime import datetime, timezone

import structlog
from sqlalchemy import JSON, Column, DateTime, Float, Integer, String
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from rwa_engine.schemas.compliance import ComplianceAssessment
from rwa_engine.schemas.score import ScoreResult

logger = structlog.get_logger()

SCHEMA = "rwa_engine"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class OpportunityScoreAudit(Base):
    __tablename__ = "opportunity_score_audit"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(String(100), nullable=False, index=True)

    # ── Scoring outputs ──
    overall_score = Column(Float, nullable=False)
    risk_adjusted_return = Column(Float, nullable=False)
    compliance_score = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)
    action = Column(String(20), nullable=False)

    # ── Full result for replay ──
    result_payload = Column(JSON, nullable=False)

    # ── Metadata ──
    requested_by = Column(String(100), nullable=True)
    scored_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<OpportunityScoreAudit {self.entity_id} score={self.overall_score}>"


class ComplianceAssessmentAudit(Base):
    __tablename__ = "compliance_assessment_audit"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)
    jurisdiction = Column(String(50), nullable=False, index=True)

    overall_score = Column(Float, nullable=False)
    compliance_level = Column(String(20), nullable=False)
    risk_level = Column(String(10), nullable=False, index=True)
    violations_count = Column(Integer, nullable=False)

    assessment_payload = Column(JSON, nullable=False)

    requested_by = Column(String(100), nullable=True)
    assessed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<ComplianceAssessmentAudit {self.entity_id} level={self.compliance_level}>"


async def record_score(db: AsyncSession, score: ScoreResult, requested_by: str) -> None:
    db.add(OpportunityScoreAudit(
        entity_id=score.entity_id,
        overall_score=score.overall_score,
        risk_adjusted_return=score.risk_adjusted_return,
        compliance_score=score.compliance_score,
        confidence=score.confidence,
        action=score.recommendations[0].action.value,
        result_payload=score.model_dump(mode="json"),
        requested_by=requested_by,
        scored_at=score.timestamp,
    ))
    await _commit(db, "opportunity_score", score.entity_id)


async def record_assessment(db: AsyncSession, assessment: ComplianceAssessment, requested_by: str) -> None:
    db.add(ComplianceAssessmentAudit(
        entity_id=assessment.entity_id,
        entity_type=assessment.entity_type.value,
        jurisdiction=assessment.jurisdiction,
        overall_score=assessment.overall_score,
        compliance_level=assessment.compliance_level.value,
        risk_level=assessment.risk_level.value,
        violations_count=len(assessment.violations),
        assessment_payload=assessment.model_dump(mode="json"),
        requested_by=requested_by,
        assessed_at=assessment.timestamp,
    ))
    await _commit(db, "compliance_assessment", assessment.entity_id)


async def _commit(db: AsyncSession, kind: str, entity_id: str) -> None:
    # The audit sink is optional: a failed write is logged, the response is still served
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("audit_write_failed", kind=kind, entity_id=entity_id, error=str(e))
