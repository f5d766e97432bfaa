"""
Regulatory change sources polled by the assessor's monitoring job.

  RandomRegulatorySource  - low-probability synthetic change per jurisdiction
  HttpRegulatorySource    - GET {base_url}/changes?jurisdiction=...
"""
from __future__ import annotations

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

import httpx
import structlog
from pydantic import TypeAdapter

from rwa_engine.core.errors import ExternalCollaboratorError
from rwa_engine.schemas.compliance import RegulatoryChange, Severity

logger = structlog.get_logger()

EFFECTIVE_AFTER = timedelta(days=90)
DEADLINE_AFTER = timedelta(days=60)


class RegulatorySource(Protocol):
    async def fetch_changes(self, jurisdiction: str) -> list[RegulatoryChange]: ...


class RandomRegulatorySource:
    def __init__(
        self,
        probability: float = 0.1,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.probability = probability
        self.rng = rng or random.Random()
        self._now = now

    async def fetch_changes(self, jurisdiction: str) -> list[RegulatoryChange]:
        if self.rng.random() >= self.probability:
            return []
        now = self._now()
        return [
            RegulatoryChange(
                id=f"change-{uuid.uuid4().hex[:12]}",
                jurisdiction=jurisdiction,
                category="financial",
                title=f"New {jurisdiction} regulatory requirement",
                description="Updated regulatory framework for digital assets",
                effective_date=now + EFFECTIVE_AFTER,
                impact=Severity.MEDIUM,
                affected_entities=[],
                requirements=["Updated compliance procedures", "Additional reporting"],
                compliance_deadline=now + DEADLINE_AFTER,
                source=f"{jurisdiction} Regulatory Authority",
                timestamp=now,
            )
        ]


_changes = TypeAdapter(list[RegulatoryChange])


class HttpRegulatorySource:
    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def fetch_changes(self, jurisdiction: str) -> list[RegulatoryChange]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.get(f"{self.base_url}/changes", params={"jurisdiction": jurisdiction})
                resp.raise_for_status()
                return _changes.validate_python(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalCollaboratorError(
                "regulatory feed unavailable", {"jurisdiction": jurisdiction, "error": str(e)}
            ) from e
