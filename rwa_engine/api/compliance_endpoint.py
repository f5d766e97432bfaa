"""
Compliance API

  POST /v1/compliance/assess/rwa          → assess an asset record
  POST /v1/compliance/assess/protocol     → assess a protocol record
  GET  /v1/compliance/report              → aggregate report over stored assessments
  GET  /v1/compliance/assessments/{id}    → latest assessment for an entity
  GET  /v1/compliance/violations/{id}     → full violation history for an entity
  GET  /v1/compliance/regulatory-changes  → append-only change log
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rwa_engine.api.dependencies import get_engine, to_http
from rwa_engine.core.auth import verify_token
from rwa_engine.core.errors import EngineError
from rwa_engine.engine import Engine
from rwa_engine.models import audit
from rwa_engine.models.database import get_db
from rwa_engine.schemas.asset import AssetRecord, EntityType, ProtocolRecord
from rwa_engine.schemas.compliance import (
    ComplianceAssessment,
    ComplianceReport,
    RegulatoryChange,
    TimeRange,
    Violation,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/compliance", tags=["compliance"])


async def _assess(
    engine: Engine,
    entity_type: EntityType,
    record: AssetRecord | ProtocolRecord,
    caller: str,
    db: Optional[AsyncSession],
) -> ComplianceAssessment:
    logger.info("compliance_assessment_started", entity_id=record.id, entity_type=entity_type.value, caller=caller)
    try:
        assessment = engine.assess_compliance(record.id, entity_type, record)
    except EngineError as e:
        logger.error("compliance_assessment_failed", entity_id=record.id, error=e.message)
        raise to_http(e)

    if db is not None:
        await audit.record_assessment(db, assessment, caller)
    return assessment


@router.post("/assess/rwa", response_model=ComplianceAssessment)
async def assess_rwa(
    asset: AssetRecord,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(verify_token),
    db: Optional[AsyncSession] = Depends(get_db),
):
    return await _assess(engine, EntityType.RWA, asset, token.get("sub", "unknown"), db)


@router.post("/assess/protocol", response_model=ComplianceAssessment)
async def assess_protocol(
    protocol: ProtocolRecord,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(verify_token),
    db: Optional[AsyncSession] = Depends(get_db),
):
    return await _assess(engine, EntityType.PROTOCOL, protocol, token.get("sub", "unknown"), db)


@router.get("/report", response_model=ComplianceReport)
async def compliance_report(
    entity_ids: Optional[list[str]] = Query(None),
    jurisdiction: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(verify_token),
):
    if (start is None) != (end is None):
        raise HTTPException(400, "start and end must be given together")
    time_range = TimeRange(start=start, end=end) if start is not None else None
    return engine.get_compliance_report(entity_ids, jurisdiction, time_range)


@router.get("/assessments/{entity_id}", response_model=ComplianceAssessment)
async def get_assessment(entity_id: str, engine: Engine = Depends(get_engine), token: dict = Depends(verify_token)):
    assessment = engine.assessor.get_assessment(entity_id)
    if assessment is None:
        raise HTTPException(404, f"No assessment for entity {entity_id}")
    return assessment


@router.get("/violations/{entity_id}", response_model=list[Violation])
async def get_violations(entity_id: str, engine: Engine = Depends(get_engine), token: dict = Depends(verify_token)):
    return engine.assessor.get_violation_history(entity_id)


@router.get("/regulatory-changes", response_model=list[RegulatoryChange])
async def list_regulatory_changes(
    jurisdiction: Optional[str] = None,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(verify_token),
):
    changes = engine.assessor.regulatory_changes
    if jurisdiction:
        return [c for c in changes if c.jurisdiction == jurisdiction]
    return list(changes)
