"""
Events emitted by the engine onto the in-process event channel.

Downstream consumers (Kafka forwarder, notification channels, the
orchestration layer) subscribe by event_type.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel

from rwa_engine.schemas.compliance import AlertChannelConfig, ComplianceAssessment, RegulatoryChange
from rwa_engine.schemas.score import ScoreResult


class ScoringCompleted(BaseModel):
    event_type: Literal["scoring_completed"] = "scoring_completed"
    entity_id: str
    score: ScoreResult
    timestamp: datetime


class AssessmentCompleted(BaseModel):
    event_type: Literal["assessment_completed"] = "assessment_completed"
    entity_id: str
    assessment: ComplianceAssessment
    timestamp: datetime


class AlertSent(BaseModel):
    event_type: Literal["alert_sent"] = "alert_sent"
    channel: AlertChannelConfig
    assessment: ComplianceAssessment
    message: str
    timestamp: datetime


class RegulatoryChangeDetected(BaseModel):
    event_type: Literal["regulatory_change_detected"] = "regulatory_change_detected"
    change: RegulatoryChange
    timestamp: datetime


EngineEvent = Union[ScoringCompleted, AssessmentCompleted, AlertSent, RegulatoryChangeDetected]
