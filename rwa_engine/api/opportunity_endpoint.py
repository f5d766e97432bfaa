"""
POST /v1/opportunities/score

Scores an RWA opportunity: multi-factor score, compliance assessment of the
same asset and (optional) research confidence, folded into one result.
Persists every served score to the audit table when auditing is enabled.
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rwa_engine.api.dependencies import get_engine, to_http
from rwa_engine.core.auth import verify_token
from rwa_engine.core.errors import EngineError
from rwa_engine.engine import Engine
from rwa_engine.models import audit
from rwa_engine.models.database import get_db
from rwa_engine.schemas.asset import AssetRecord
from rwa_engine.schemas.score import ScoreResult

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/opportunities", tags=["opportunities"])


@router.post(
    "/score",
    response_model=ScoreResult,
    summary="Score a real-world-asset opportunity",
    description="Returns the weighted opportunity score enhanced with the asset's compliance assessment.",
)
async def score_opportunity(
    asset: AssetRecord,
    engine: Engine = Depends(get_engine),
    token_payload: dict = Depends(verify_token),
    db: Optional[AsyncSession] = Depends(get_db),
) -> ScoreResult:
    caller = token_payload.get("sub", "unknown")
    logger.info("opportunity_scoring_started", entity_id=asset.id, asset_type=asset.asset_type.value, caller=caller)

    try:
        score = await engine.score_opportunity(asset)
    except EngineError as e:
        logger.warning("opportunity_scoring_failed", entity_id=asset.id, error=e.message)
        raise to_http(e)

    if db is not None:
        await audit.record_score(db, score, caller)

    return score
