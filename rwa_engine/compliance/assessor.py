"""
Compliance Assessor

Orchestrates, per assessment:
  1. Jurisdiction resolution (record → protocol jurisdiction → "US")
  2. Applicable rule selection from the catalog
  3. Per-rule score via the injected RuleEvaluator; < 0.7 → open violation
  4. Overall score = passed / applicable (1.0 when nothing applies)
  5. Compliance level, risk level, next review date
  6. Remediation recommendations, highest priority first

Then stores the assessment (last wins), appends to the entity's violation
history, publishes assessment_completed and hands off to the alert dispatcher.

Also owns the append-only regulatory change log and the monitoring cycle
that re-assesses entities whose review date has passed.
"""
from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from rwa_engine.compliance import reporting
from rwa_engine.compliance.evaluators import VIOLATION_THRESHOLD, EntityRecord, RuleEvaluator
from rwa_engine.compliance.rules import RuleCatalog
from rwa_engine.compliance.sources import RegulatorySource
from rwa_engine.core.errors import EngineError, ExternalCollaboratorError
from rwa_engine.schemas.asset import AssetRecord, ComplianceLevel, EntityType, ProtocolRecord
from rwa_engine.schemas.compliance import (
    ComplianceAssessment,
    ComplianceRecommendation,
    ComplianceReport,
    ComplianceRule,
    RegulatoryChange,
    RemediationImpact,
    Severity,
    TimeRange,
    Violation,
)
from rwa_engine.schemas.events import AssessmentCompleted, RegulatoryChangeDetected
from rwa_engine.services import metrics
from rwa_engine.services.alert_dispatcher import AlertDispatcher
from rwa_engine.services.event_publisher import EventSink

logger = structlog.get_logger()

DEFAULT_JURISDICTION = "US"
REMEDIATION_WINDOW = timedelta(days=30)


# ═══════════════════════════════════════════════════════════════
# Thresholds + lookup tables
# ═══════════════════════════════════════════════════════════════
COMPLIANT_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.6

REVIEW_INTERVAL_DAYS: dict[Severity, int] = {
    Severity.LOW: 90,
    Severity.MEDIUM: 60,
    Severity.HIGH: 30,
    Severity.CRITICAL: 7,
}

REMEDIATION_COST: dict[str, float] = {
    "securities": 50_000,
    "aml": 30_000,
    "trading": 40_000,
    "privacy": 25_000,
    "financial": 35_000,
}
DEFAULT_REMEDIATION_COST = 20_000

REMEDIATION_IMPACT: dict[Severity, RemediationImpact] = {
    Severity.CRITICAL: RemediationImpact.HIGH,
    Severity.HIGH: RemediationImpact.MEDIUM,
}


def resolve_jurisdiction(record: EntityRecord) -> str:
    if isinstance(record, AssetRecord):
        return record.regulatory_status.jurisdiction
    if isinstance(record, ProtocolRecord) and record.jurisdiction:
        return record.jurisdiction
    return DEFAULT_JURISDICTION


def compliance_level(score: float) -> ComplianceLevel:
    if score >= COMPLIANT_THRESHOLD:
        return ComplianceLevel.COMPLIANT
    if score >= PARTIAL_THRESHOLD:
        return ComplianceLevel.PARTIAL
    return ComplianceLevel.NON_COMPLIANT


def risk_level(violations: list[Violation], score: float) -> Severity:
    """
    critical  any critical violation
    high      more than 2 high violations, or score < 0.3
    medium    any high violation, or score < 0.6
    low       otherwise
    """
    if any(v.severity == Severity.CRITICAL for v in violations):
        return Severity.CRITICAL
    high_count = sum(1 for v in violations if v.severity == Severity.HIGH)
    if high_count > 2 or score < 0.3:
        return Severity.HIGH
    if high_count > 0 or score < 0.6:
        return Severity.MEDIUM
    return Severity.LOW


def build_violation(rule: ComplianceRule, entity_id: str, detected_at: datetime) -> Violation:
    return Violation(
        rule_id=rule.id,
        entity_id=entity_id,
        severity=rule.severity,
        description=f"Non-compliance with {rule.rule}",
        detected_at=detected_at,
        remediation=f"Implement {', '.join(rule.requirements)}",
    )


def build_recommendations(
    violations: list[Violation],
    rules: list[ComplianceRule],
    now: datetime,
) -> list[ComplianceRecommendation]:
    by_id = {r.id: r for r in rules}
    recs = []
    for violation in violations:
        rule = by_id.get(violation.rule_id)
        if rule is None:
            continue
        recs.append(ComplianceRecommendation(
            priority=violation.severity,
            category=rule.category,
            description=f"Address {rule.rule} violation",
            action=violation.remediation,
            deadline=now + REMEDIATION_WINDOW,
            estimated_cost=REMEDIATION_COST.get(rule.category, DEFAULT_REMEDIATION_COST),
            impact=REMEDIATION_IMPACT.get(violation.severity, RemediationImpact.LOW),
        ))
    # sorted() is stable: equal priorities keep violation order
    return sorted(recs, key=lambda r: r.priority.rank, reverse=True)


class ComplianceAssessor:
    def __init__(
        self,
        catalog: RuleCatalog,
        evaluator: RuleEvaluator,
        dispatcher: AlertDispatcher,
        source: Optional[RegulatorySource] = None,
        events: Optional[EventSink] = None,
        jurisdictions: Optional[list[str]] = None,
        source_timeout_seconds: float = 10.0,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.catalog = catalog
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.source = source
        self.events = events
        self.jurisdictions = list(jurisdictions or [])
        self.source_timeout_seconds = source_timeout_seconds
        self._now = now

        self._assessments: dict[str, ComplianceAssessment] = {}
        self._violations: dict[str, list[Violation]] = defaultdict(list)
        self._tracked: dict[str, tuple[EntityType, EntityRecord]] = {}
        self._changes: list[RegulatoryChange] = []

    # ── Assessment ──

    def assess(self, entity_id: str, entity_type: EntityType, record: EntityRecord) -> ComplianceAssessment:
        t0 = time.perf_counter()
        now = self._now()
        jurisdiction = resolve_jurisdiction(record)
        rules = self.catalog.rules_for(jurisdiction)

        violations: list[Violation] = []
        for rule in rules:
            if self.evaluator.evaluate(rule, record) < VIOLATION_THRESHOLD:
                violations.append(build_violation(rule, entity_id, now))

        overall = (len(rules) - len(violations)) / len(rules) if rules else 1.0
        risk = risk_level(violations, overall)

        assessment = ComplianceAssessment(
            entity_id=entity_id,
            entity_type=entity_type,
            jurisdiction=jurisdiction,
            timestamp=now,
            overall_score=overall,
            compliance_level=compliance_level(overall),
            violations=violations,
            recommendations=build_recommendations(violations, rules, now),
            risk_level=risk,
            last_review=now,
            next_review=now + timedelta(days=REVIEW_INTERVAL_DAYS[risk]),
        )

        self._assessments[entity_id] = assessment
        self._violations[entity_id].extend(violations)
        self._tracked[entity_id] = (entity_type, record)

        metrics.ASSESSMENTS_TOTAL.labels(
            entity_type=entity_type.value,
            compliance_level=assessment.compliance_level.value,
        ).inc()
        for v in violations:
            metrics.VIOLATIONS_TOTAL.labels(severity=v.severity.value).inc()

        if self.events is not None:
            self.events.publish(AssessmentCompleted(entity_id=entity_id, assessment=assessment, timestamp=now))
        self.dispatcher.dispatch(assessment)

        logger.info(
            "compliance_assessment_complete",
            entity_id=entity_id,
            entity_type=entity_type.value,
            jurisdiction=jurisdiction,
            rules_applicable=len(rules),
            violations_count=len(violations),
            overall_score=round(overall, 4),
            compliance_level=assessment.compliance_level.value,
            risk_level=risk.value,
            elapsed_ms=int((time.perf_counter() - t0) * 1000),
        )
        return assessment

    def get_assessment(self, entity_id: str) -> Optional[ComplianceAssessment]:
        return self._assessments.get(entity_id)

    def get_violation_history(self, entity_id: str) -> list[Violation]:
        return list(self._violations.get(entity_id, []))

    # ── Regulatory change log ──

    @property
    def regulatory_changes(self) -> tuple[RegulatoryChange, ...]:
        return tuple(self._changes)

    async def monitor_regulatory_changes(self) -> list[RegulatoryChange]:
        """
        Poll the source once per configured jurisdiction and append whatever
        it reports. A failing or slow jurisdiction is logged and skipped.
        Changes are recorded as each jurisdiction answers.
        """
        if self.source is None:
            return []

        detected: list[RegulatoryChange] = []
        for jurisdiction in self.jurisdictions:
            try:
                changes = await asyncio.wait_for(
                    self.source.fetch_changes(jurisdiction),
                    timeout=self.source_timeout_seconds,
                )
            except (ExternalCollaboratorError, asyncio.TimeoutError, ValueError) as e:
                logger.warning("regulatory_source_failed", jurisdiction=jurisdiction, error=str(e))
                continue
            self._record_changes(changes)
            detected.extend(changes)

        logger.info(
            "regulatory_monitoring_complete",
            jurisdictions=len(self.jurisdictions),
            new_changes=len(detected),
            total_changes=len(self._changes),
        )
        return detected

    def _record_changes(self, changes: list[RegulatoryChange]) -> None:
        self._changes.extend(changes)
        now = self._now()
        for change in changes:
            metrics.REGULATORY_CHANGES_TOTAL.labels(jurisdiction=change.jurisdiction).inc()
            if self.events is not None:
                self.events.publish(RegulatoryChangeDetected(change=change, timestamp=now))

    # ── Monitoring cycle ──

    def run_monitoring_cycle(self, now: Optional[datetime] = None) -> list[str]:
        """Re-assess every tracked entity whose next review date has passed."""
        now = now or self._now()
        due = [
            entity_id
            for entity_id, assessment in self._assessments.items()
            if entity_id in self._tracked and assessment.next_review <= now
        ]
        reassessed: list[str] = []
        for entity_id in due:
            entity_type, record = self._tracked[entity_id]
            try:
                self.assess(entity_id, entity_type, record)
            except EngineError as e:
                logger.error(
                    "compliance_reassessment_failed",
                    entity_id=entity_id,
                    error=e.message,
                    context=e.context,
                )
                continue
            reassessed.append(entity_id)

        logger.info(
            "compliance_monitoring_cycle_complete",
            tracked=len(self._tracked),
            due=len(due),
            reassessed=len(reassessed),
        )
        return reassessed

    # ── Reporting ──

    def get_compliance_report(
        self,
        entity_ids: Optional[list[str]] = None,
        jurisdiction: Optional[str] = None,
        time_range: Optional[TimeRange] = None,
    ) -> ComplianceReport:
        selected = list(self._assessments.values())
        if entity_ids:
            wanted = set(entity_ids)
            selected = [a for a in selected if a.entity_id in wanted]
        if jurisdiction:
            selected = [a for a in selected if a.jurisdiction == jurisdiction]
        if time_range is not None:
            selected = [a for a in selected if time_range.start <= a.timestamp <= time_range.end]
        return reporting.build_report(selected, self._now())

    def get_status(self) -> dict:
        return {
            "rules_count": len(self.catalog),
            "assessments_count": len(self._assessments),
            "violations_count": sum(len(v) for v in self._violations.values()),
            "regulatory_changes_count": len(self._changes),
            "alert_channels_count": len(self.dispatcher.channels),
            "tracked_entities": len(self._tracked),
        }
