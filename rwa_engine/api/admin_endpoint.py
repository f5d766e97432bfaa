"""
Admin API: compliance rule catalog CRUD + background job triggers.

Endpoints:
  GET/POST   /v1/admin/rules
  PUT/DELETE /v1/admin/rules/{rule_id}
    → Rule catalog maintenance (changes apply to the next assessment)

  POST /v1/admin/refresh-market-data
    → Run the market benchmark refresh on demand

  POST /v1/admin/poll-regulatory-changes
    → Poll the regulatory source for every configured jurisdiction now

Every catalog change is logged with the calling user.
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from rwa_engine.api.dependencies import get_engine, to_http
from rwa_engine.core.auth import require_admin
from rwa_engine.core.errors import EngineError
from rwa_engine.engine import Engine
from rwa_engine.schemas.compliance import ComplianceRule, RuleCreate, RuleUpdate

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/admin", tags=["admin"])


# ── Rule catalog ──

@router.get("/rules", response_model=list[ComplianceRule])
async def list_rules(
    jurisdiction: Optional[str] = None,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(require_admin),
):
    return engine.catalog.list_rules(jurisdiction)


@router.post("/rules", response_model=ComplianceRule, status_code=201)
async def add_rule(rule: RuleCreate, engine: Engine = Depends(get_engine), token: dict = Depends(require_admin)):
    try:
        created = engine.add_rule(rule)
    except EngineError as e:
        raise to_http(e)
    logger.info("rule_created_via_api", rule_id=created.id, changed_by=token.get("sub", "unknown"))
    return created


@router.put("/rules/{rule_id}", response_model=ComplianceRule)
async def update_rule(
    rule_id: str,
    update: RuleUpdate,
    engine: Engine = Depends(get_engine),
    token: dict = Depends(require_admin),
):
    changes = update.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(400, "No fields to update")
    try:
        updated = engine.update_rule(rule_id, **changes)
    except EngineError as e:
        raise to_http(e)
    logger.info("rule_updated_via_api", rule_id=rule_id, fields=sorted(changes), changed_by=token.get("sub", "unknown"))
    return updated


@router.delete("/rules/{rule_id}")
async def delete_rule(rule_id: str, engine: Engine = Depends(get_engine), token: dict = Depends(require_admin)):
    if not engine.remove_rule(rule_id):
        raise HTTPException(404, f"Compliance rule not found: {rule_id}")
    logger.info("rule_deleted_via_api", rule_id=rule_id, changed_by=token.get("sub", "unknown"))
    return {"status": "deleted", "rule_id": rule_id}


# ══ Job Triggers ══════════════════════════════════════════════════════════

class RefreshResponse(BaseModel):
    triggered_by: str
    status: str
    message: str
    job_result: Optional[dict] = None


@router.post(
    "/refresh-market-data",
    response_model=RefreshResponse,
    summary="Trigger market benchmark refresh",
    description=(
        "Runs the periodic market-data job on demand. Pulls benchmarks from the "
        "configured market feed and swaps in the new snapshot."
    ),
)
async def trigger_market_data_refresh(engine: Engine = Depends(get_engine), token: dict = Depends(require_admin)):
    user = token.get("sub", "unknown")
    logger.info("market_refresh_triggered", triggered_by=user)

    try:
        result = await engine.refresh_market_data()
    except EngineError as e:
        logger.error("market_refresh_failed", error=e.message, triggered_by=user)
        raise HTTPException(status_code=502, detail=f"Market data refresh failed: {e.message}")

    return RefreshResponse(
        triggered_by=user,
        status=result["status"],
        message=(
            f"Updated {result['benchmarks_updated']} benchmarks, "
            f"{result['benchmarks_total']} total ({result['elapsed_seconds']}s)"
        ),
        job_result=result,
    )


@router.post(
    "/poll-regulatory-changes",
    response_model=RefreshResponse,
    summary="Poll for regulatory changes now",
)
async def trigger_regulatory_poll(engine: Engine = Depends(get_engine), token: dict = Depends(require_admin)):
    user = token.get("sub", "unknown")
    logger.info("regulatory_poll_triggered", triggered_by=user)

    changes = await engine.assessor.monitor_regulatory_changes()
    return RefreshResponse(
        triggered_by=user,
        status="success",
        message=f"{len(changes)} new regulatory changes detected",
        job_result={"change_ids": [c.id for c in changes]},
    )
