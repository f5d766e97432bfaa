"""
Compliance report assembly over a set of stored assessments.
"""
from __future__ import annotations

from datetime import datetime
from statistics import fmean

from rwa_engine.schemas.asset import ComplianceLevel
from rwa_engine.schemas.compliance import (
    ComplianceAssessment,
    ComplianceRecommendation,
    ComplianceReport,
    ComplianceSummary,
    ComplianceTrend,
    Severity,
    ViolationStatus,
    ViolationSummary,
)

TOP_RECOMMENDATIONS = 10
TREND_TOLERANCE = 0.01


def summarize(assessments: list[ComplianceAssessment]) -> ComplianceSummary:
    total = len(assessments)
    by_level = {level: sum(1 for a in assessments if a.compliance_level == level) for level in ComplianceLevel}
    return ComplianceSummary(
        total=total,
        compliant=by_level[ComplianceLevel.COMPLIANT],
        partial=by_level[ComplianceLevel.PARTIAL],
        non_compliant=by_level[ComplianceLevel.NON_COMPLIANT],
        compliance_rate=(by_level[ComplianceLevel.COMPLIANT] / total) * 100 if total else 0.0,
        average_score=fmean(a.overall_score for a in assessments) if total else 0.0,
    )


def summarize_violations(assessments: list[ComplianceAssessment]) -> ViolationSummary:
    violations = [v for a in assessments for v in a.violations]
    return ViolationSummary(
        total=len(violations),
        by_severity={s: sum(1 for v in violations if v.severity == s) for s in reversed(Severity)},
        open=sum(1 for v in violations if v.status == ViolationStatus.OPEN),
        resolved=sum(1 for v in violations if v.status == ViolationStatus.RESOLVED),
    )


def compute_trend(assessments: list[ComplianceAssessment]) -> ComplianceTrend:
    """
    Compare the mean score of the older half of the assessments with the
    newer half. Fewer than two assessments is always stable.
    """
    if len(assessments) < 2:
        return ComplianceTrend(trend="stable", change_rate=0.0)

    ordered = sorted(assessments, key=lambda a: a.timestamp)
    mid = len(ordered) // 2
    older = fmean(a.overall_score for a in ordered[:mid])
    newer = fmean(a.overall_score for a in ordered[mid:])
    change = newer - older

    if change > TREND_TOLERANCE:
        trend = "improving"
    elif change < -TREND_TOLERANCE:
        trend = "declining"
    else:
        trend = "stable"
    return ComplianceTrend(trend=trend, change_rate=round(change, 6))


def top_recommendations(assessments: list[ComplianceAssessment]) -> list[ComplianceRecommendation]:
    recs = [r for a in assessments for r in a.recommendations]
    return sorted(recs, key=lambda r: r.priority.rank, reverse=True)[:TOP_RECOMMENDATIONS]


def build_report(assessments: list[ComplianceAssessment], now: datetime) -> ComplianceReport:
    return ComplianceReport(
        timestamp=now,
        summary=summarize(assessments),
        assessments=assessments,
        violations=summarize_violations(assessments),
        trends=compute_trend(assessments),
        recommendations=top_recommendations(assessments),
    )
