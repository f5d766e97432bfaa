"""
Per-rule compliance scoring strategies.

The assessor only asks "how well does this entity satisfy this rule" as a
number in [0, 1]; a rule scoring below VIOLATION_THRESHOLD is a violation.
HeuristicRuleEvaluator is the category-bonus placeholder; real rule checks
plug in by implementing RuleEvaluator.
"""
from __future__ import annotations

import random
from typing import Optional, Protocol, Union

from rwa_engine.schemas.asset import AssetRecord, ProtocolRecord
from rwa_engine.schemas.compliance import ComplianceRule

VIOLATION_THRESHOLD = 0.7

EntityRecord = Union[AssetRecord, ProtocolRecord]

CATEGORY_BONUS: dict[str, float] = {
    "securities": 0.2,
    "aml": 0.3,
    "trading": 0.1,
    "privacy": 0.2,
    "financial": 0.2,
}


class RuleEvaluator(Protocol):
    def evaluate(self, rule: ComplianceRule, record: EntityRecord) -> float: ...


class HeuristicRuleEvaluator:
    """
    0.5 + category bonus, plus uniform jitter in [-jitter/2, +jitter/2].

    jitter=0 (the default) makes the evaluator deterministic.
    """

    def __init__(self, jitter: float = 0.0, rng: Optional[random.Random] = None):
        self.jitter = jitter
        self.rng = rng or random.Random()

    def evaluate(self, rule: ComplianceRule, record: EntityRecord) -> float:
        score = 0.5 + CATEGORY_BONUS.get(rule.category, 0.0)
        if self.jitter:
            score += (self.rng.random() - 0.5) * self.jitter
        # rounded so 0.5 + 0.2 lands exactly on the 0.7 threshold
        return round(max(0.0, min(1.0, score)), 9)


class FixedRuleEvaluator:
    """Returns a preset score per rule id (default for the rest). Useful for replaying known outcomes."""

    def __init__(self, scores: dict[str, float], default: float = 1.0):
        self.scores = scores
        self.default = default

    def evaluate(self, rule: ComplianceRule, record: EntityRecord) -> float:
        return self.scores.get(rule.id, self.default)
