"""
Shared route dependencies: the process-wide Engine and error → HTTP mapping.
"""
from __future__ import annotations

from fastapi import HTTPException, Request

from rwa_engine.core.errors import (
    EngineError,
    RuleConflictError,
    RuleEvaluationError,
    RuleNotFoundError,
    ScoringError,
)
from rwa_engine.engine import Engine

ERROR_STATUS: dict[type[EngineError], int] = {
    ScoringError: 422,
    RuleNotFoundError: 404,
    RuleConflictError: 409,
    RuleEvaluationError: 500,
}


def get_engine(request: Request) -> Engine:
    """The Engine built by the application lifespan."""
    return request.app.state.engine


def to_http(error: EngineError) -> HTTPException:
    status = next((code for kind, code in ERROR_STATUS.items() if isinstance(error, kind)), 500)
    return HTTPException(status_code=status, detail={"error": error.message, **error.context})
