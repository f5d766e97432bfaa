"""
Engine error taxonomy.

  EngineError
  ├── ConfigurationError          bad weights / thresholds, fatal at build time
  ├── ScoringError                required numeric input missing
  ├── RuleCatalogError
  │   ├── RuleEvaluationError     catalog corrupted, surfaced to the caller
  │   ├── RuleNotFoundError
  │   └── RuleConflictError
  └── ExternalCollaboratorError   research / feeds / channels, logged and degraded

Missing optional fields are never raised; they resolve to documented
neutral defaults inside the scorer and assessor.
"""
from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """Base for every error the engine surfaces to a caller."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(EngineError):
    pass


class ScoringError(EngineError):
    pass


class RuleCatalogError(EngineError):
    pass


class RuleEvaluationError(RuleCatalogError):
    pass


class RuleNotFoundError(RuleCatalogError):
    pass


class RuleConflictError(RuleCatalogError):
    pass


class ExternalCollaboratorError(EngineError):
    pass
