"""
Alert Dispatcher: turns a compliance assessment into alert_sent events.

A channel fires when it is enabled and the assessment's risk level ranks at
or above the channel's minimum severity (low < medium < high < critical).
Delivery is left to notifier subscribers on the event channel; dispatch()
itself never raises.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
import structlog

from rwa_engine.schemas.compliance import AlertChannelConfig, ChannelType, ComplianceAssessment
from rwa_engine.schemas.events import AlertSent, EngineEvent
from rwa_engine.services import metrics
from rwa_engine.services.event_publisher import EventSink, spawn

logger = structlog.get_logger()


def should_alert(channel: AlertChannelConfig, assessment: ComplianceAssessment) -> bool:
    return channel.enabled and assessment.risk_level.rank >= channel.severity.rank


def format_alert_message(assessment: ComplianceAssessment) -> str:
    return "\n".join([
        f"Compliance Alert - {assessment.risk_level.value.upper()}",
        f"Entity: {assessment.entity_id}",
        f"Jurisdiction: {assessment.jurisdiction}",
        f"Compliance Score: {assessment.overall_score * 100:.1f}%",
        f"Violations: {len(assessment.violations)}",
        f"Risk Level: {assessment.risk_level.value}",
        f"Timestamp: {assessment.timestamp.isoformat()}",
    ])


class AlertDispatcher:
    def __init__(
        self,
        channels: list[AlertChannelConfig],
        events: Optional[EventSink] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.channels = list(channels)
        self.events = events
        self._now = now

    def dispatch(self, assessment: ComplianceAssessment) -> list[AlertSent]:
        sent: list[AlertSent] = []
        for channel in self.channels:
            if not should_alert(channel, assessment):
                continue
            try:
                alert = AlertSent(
                    channel=channel,
                    assessment=assessment,
                    message=format_alert_message(assessment),
                    timestamp=self._now(),
                )
                if self.events is not None:
                    self.events.publish(alert)
            except Exception as e:
                # Alerting degrades, the assessment call does not fail
                logger.warning(
                    "compliance_alert_failed",
                    entity_id=assessment.entity_id,
                    channel=channel.type.value,
                    error=str(e),
                )
                continue
            metrics.ALERTS_TOTAL.labels(channel=channel.type.value).inc()
            sent.append(alert)

        if sent:
            logger.info(
                "compliance_alerts_dispatched",
                entity_id=assessment.entity_id,
                risk_level=assessment.risk_level.value,
                channels=[a.channel.type.value for a in sent],
            )
        return sent


# ═══════════════════════════════════════════════════════════════
# Notifiers: subscribe to "alert_sent" on the event bus
# ═══════════════════════════════════════════════════════════════

class LoggingNotifier:
    """Writes every alert to the structured log. Stands in for email / slack / sms."""

    def __call__(self, event: EngineEvent) -> None:
        if not isinstance(event, AlertSent):
            return
        logger.info(
            "compliance_alert_sent",
            channel=event.channel.type.value,
            recipients=event.channel.recipients,
            severity=event.channel.severity.value,
            template=event.channel.template,
            message=event.message,
        )


class WebhookNotifier:
    """POSTs webhook-channel alerts to each recipient URL, fire-and-forget."""

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds

    def __call__(self, event: EngineEvent) -> None:
        if not isinstance(event, AlertSent) or event.channel.type != ChannelType.WEBHOOK:
            return
        spawn(self.send(event), label="webhook_alert")

    async def send(self, event: AlertSent) -> None:
        payload = {
            "template": event.channel.template,
            "message": event.message,
            "entity_id": event.assessment.entity_id,
            "risk_level": event.assessment.risk_level.value,
            "timestamp": event.timestamp.isoformat(),
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            for url in event.channel.recipients:
                try:
                    resp = await client.post(url, json=payload)
                    resp.raise_for_status()
                    logger.debug("webhook_alert_delivered", url=url, status=resp.status_code)
                except httpx.HTTPError as e:
                    logger.warning("webhook_alert_failed", url=url, error=str(e))
