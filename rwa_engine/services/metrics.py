"""
Prometheus instruments. Exposed by the /metrics mount in main.py.
"""
from prometheus_client import Counter, Histogram

SCORING_TOTAL = Counter(
    "rwa_scoring_total",
    "Opportunity scoring calls",
    ["outcome"],  # computed | cache_hit | error
)
SCORING_LATENCY = Histogram(
    "rwa_scoring_latency_seconds",
    "Opportunity scorer compute time",
)
OVERALL_SCORE = Histogram(
    "rwa_overall_score",
    "Distribution of computed overall opportunity scores",
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)

ASSESSMENTS_TOTAL = Counter(
    "rwa_compliance_assessments_total",
    "Compliance assessments by resulting level",
    ["entity_type", "compliance_level"],
)
VIOLATIONS_TOTAL = Counter(
    "rwa_compliance_violations_total",
    "Violations detected, by severity",
    ["severity"],
)
ALERTS_TOTAL = Counter(
    "rwa_alerts_sent_total",
    "Compliance alerts emitted, by channel type",
    ["channel"],
)
REGULATORY_CHANGES_TOTAL = Counter(
    "rwa_regulatory_changes_total",
    "Regulatory changes detected, by jurisdiction",
    ["jurisdiction"],
)
