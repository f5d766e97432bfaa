"""
Rule Catalog: jurisdiction-scoped compliance rules.

Seeded from DEFAULT_RULES at engine start; mutable through add / update /
remove. Rule objects are frozen, so an update swaps in a new instance with a
refreshed last_updated rather than editing in place.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from rwa_engine.core.errors import RuleConflictError, RuleEvaluationError, RuleNotFoundError
from rwa_engine.schemas.compliance import ComplianceRule, RuleCreate, Severity

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Default catalog
# ═══════════════════════════════════════════════════════════════
DEFAULT_RULES: tuple[dict[str, Any], ...] = (
    {
        "id": "us-sec-rule-1",
        "jurisdiction": "US",
        "category": "securities",
        "rule": "SEC registration requirements for digital assets",
        "severity": Severity.HIGH,
        "description": "Digital assets must be registered with SEC if they qualify as securities",
        "requirements": ["SEC registration", "Disclosure requirements", "Periodic reporting"],
    },
    {
        "id": "us-kyc-rule-1",
        "jurisdiction": "US",
        "category": "aml",
        "rule": "KYC/AML requirements for financial institutions",
        "severity": Severity.CRITICAL,
        "description": "Customer identification and anti-money laundering procedures required",
        "requirements": ["Customer identification", "Transaction monitoring", "Suspicious activity reporting"],
    },
    {
        "id": "eu-mifid-rule-1",
        "jurisdiction": "EU",
        "category": "trading",
        "rule": "MiFID II trading requirements",
        "severity": Severity.HIGH,
        "description": "Markets in Financial Instruments Directive II compliance",
        "requirements": ["Trading venue authorization", "Transaction reporting", "Best execution"],
    },
    {
        "id": "eu-gdpr-rule-1",
        "jurisdiction": "EU",
        "category": "privacy",
        "rule": "GDPR data protection requirements",
        "severity": Severity.CRITICAL,
        "description": "General Data Protection Regulation compliance",
        "requirements": ["Data minimization", "Consent management", "Data subject rights"],
    },
    {
        "id": "uk-fca-rule-1",
        "jurisdiction": "UK",
        "category": "financial",
        "rule": "FCA authorization requirements",
        "severity": Severity.HIGH,
        "description": "Financial Conduct Authority authorization for financial services",
        "requirements": ["FCA authorization", "Capital requirements", "Conduct rules"],
    },
    {
        "id": "sg-mas-rule-1",
        "jurisdiction": "Singapore",
        "category": "financial",
        "rule": "MAS licensing requirements",
        "severity": Severity.HIGH,
        "description": "Monetary Authority of Singapore licensing for financial services",
        "requirements": ["MAS license", "Capital adequacy", "Risk management"],
    },
    {
        "id": "ch-finma-rule-1",
        "jurisdiction": "Switzerland",
        "category": "financial",
        "rule": "FINMA authorization requirements",
        "severity": Severity.HIGH,
        "description": "Swiss Financial Market Supervisory Authority authorization",
        "requirements": ["FINMA authorization", "Swiss banking license", "Compliance monitoring"],
    },
)


class RuleCatalog:
    def __init__(
        self,
        rules: Optional[list[ComplianceRule]] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._now = now
        if rules is None:
            stamp = now()
            rules = [ComplianceRule(**spec, last_updated=stamp) for spec in DEFAULT_RULES]
        self._rules: dict[str, ComplianceRule] = {r.id: r for r in rules}
        logger.info("rule_catalog_loaded", rules=len(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def get_rule(self, rule_id: str) -> Optional[ComplianceRule]:
        return self._rules.get(rule_id)

    def list_rules(self, jurisdiction: Optional[str] = None) -> list[ComplianceRule]:
        rules = list(self._rules.values())
        if jurisdiction is not None:
            rules = [r for r in rules if r.jurisdiction == jurisdiction]
        return rules

    def rules_for(self, jurisdiction: str) -> list[ComplianceRule]:
        """
        Rules applicable to an entity in `jurisdiction`, in catalog order.
        Raises RuleEvaluationError when an entry is not a rule or is keyed
        under a different id than it carries.
        """
        applicable = []
        for key, rule in self._rules.items():
            if not isinstance(rule, ComplianceRule) or rule.id != key:
                logger.error("rule_catalog_corrupted", key=key)
                raise RuleEvaluationError("rule catalog is corrupted", {"key": key})
            if rule.jurisdiction == jurisdiction:
                applicable.append(rule)
        return applicable

    # ── Mutation ──

    def add_rule(self, rule: RuleCreate | ComplianceRule) -> ComplianceRule:
        if rule.id in self._rules:
            raise RuleConflictError(f"Compliance rule already exists: {rule.id}", {"rule_id": rule.id})
        data = rule.model_dump(exclude={"last_updated"})
        stored = ComplianceRule(**data, last_updated=self._now())
        self._rules[stored.id] = stored
        logger.info("compliance_rule_added", rule_id=stored.id, jurisdiction=stored.jurisdiction)
        return stored

    def update_rule(self, rule_id: str, **changes: Any) -> ComplianceRule:
        existing = self._rules.get(rule_id)
        if existing is None:
            raise RuleNotFoundError(f"Compliance rule not found: {rule_id}", {"rule_id": rule_id})
        changes = {k: v for k, v in changes.items() if v is not None and k not in ("id", "last_updated")}
        updated = ComplianceRule(**{**existing.model_dump(), **changes, "last_updated": self._now()})
        self._rules[rule_id] = updated
        logger.info("compliance_rule_updated", rule_id=rule_id, fields=sorted(changes))
        return updated

    def remove_rule(self, rule_id: str) -> bool:
        removed = self._rules.pop(rule_id, None) is not None
        logger.info("compliance_rule_removed", rule_id=rule_id, removed=removed)
        return removed
