"""
Research collaborator: qualitative confidence signal for an asset.

Optional. When unreachable, slow, or not configured, the facade falls back
to the scorer's computed confidence; research never fails a scoring call.
"""
from __future__ import annotations

from typing import Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel, Field

from rwa_engine.core.errors import ExternalCollaboratorError
from rwa_engine.schemas.asset import AssetRecord

logger = structlog.get_logger()


class ResearchFindings(BaseModel):
    confidence: float = Field(ge=0, le=1)
    findings: list[str] = []


class ResearchClient(Protocol):
    async def research_asset(self, asset: AssetRecord) -> ResearchFindings: ...


class HttpResearchClient:
    """POST {base_url}/research/asset with the asset record."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def research_asset(self, asset: AssetRecord) -> ResearchFindings:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, headers=headers) as client:
                resp = await client.post(
                    f"{self.base_url}/research/asset",
                    json=asset.model_dump(mode="json"),
                )
                resp.raise_for_status()
                return ResearchFindings.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalCollaboratorError(
                "research service unavailable", {"asset_id": asset.id, "error": str(e)}
            ) from e
