"""
Composition root + facade.

build_engine() validates settings, wires every component once and returns
the Engine that the HTTP layer, the message handler and the scheduler all
share by reference.
"""
from __future__ import annotations

import asyncio
import random
import time
from datetime import datetime, timezone
from statistics import fmean
from typing import Any, Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from rwa_engine.compliance.assessor import ComplianceAssessor
from rwa_engine.compliance.evaluators import HeuristicRuleEvaluator, RuleEvaluator
from rwa_engine.compliance.rules import RuleCatalog
from rwa_engine.compliance.sources import HttpRegulatorySource, RandomRegulatorySource, RegulatorySource
from rwa_engine.core.config import Settings, validate_settings
from rwa_engine.core.errors import ExternalCollaboratorError
from rwa_engine.schemas.asset import AssetRecord, EntityType, ProtocolRecord
from rwa_engine.schemas.compliance import (
    ComplianceAssessment,
    ComplianceRecommendation,
    ComplianceReport,
    ComplianceRule,
    RuleCreate,
    Severity,
    TimeRange,
)
from rwa_engine.schemas.score import Action, Recommendation, RecommendationRisk, ScoreResult, Timeframe
from rwa_engine.scoring.engine import OpportunityScorer
from rwa_engine.services import scheduler as jobs
from rwa_engine.services.alert_dispatcher import AlertDispatcher, LoggingNotifier, WebhookNotifier
from rwa_engine.services.cache import ResultCache
from rwa_engine.services.event_publisher import EventBus, KafkaEventForwarder
from rwa_engine.services.market_data import HttpMarketFeed, MarketDataStore
from rwa_engine.services.research import HttpResearchClient, ResearchClient, ResearchFindings

logger = structlog.get_logger()

COMPLIANCE_ACTION: dict[Severity, tuple[Action, RecommendationRisk]] = {
    Severity.CRITICAL: (Action.AVOID, RecommendationRisk.HIGH),
    Severity.HIGH: (Action.MONITOR, RecommendationRisk.MEDIUM),
}


def compliance_recommendation(
    rec: ComplianceRecommendation,
    nominal_yield: float,
    compliance_score: float,
) -> Recommendation:
    action, risk = COMPLIANCE_ACTION.get(rec.priority, (Action.HOLD, RecommendationRisk.LOW))
    return Recommendation(
        action=action,
        confidence=compliance_score,
        reasoning=rec.description,
        timeframe=Timeframe.SHORT,
        risk_level=risk,
        expected_return=nominal_yield * compliance_score,
        max_exposure=0,
    )


def enhance_score(
    score: ScoreResult,
    assessment: ComplianceAssessment,
    nominal_yield: float,
    research: Optional[ResearchFindings],
) -> ScoreResult:
    """Fold the compliance assessment and research signal into a copy of the score."""
    compliance = assessment.overall_score
    if research is not None:
        confidence = fmean([score.confidence, compliance, research.confidence])
    else:
        confidence = score.confidence
    return score.model_copy(update={
        "compliance_score": compliance,
        "recommendations": [
            *score.recommendations,
            *(compliance_recommendation(r, nominal_yield, compliance) for r in assessment.recommendations),
        ],
        "confidence": confidence,
        "research_findings": research.findings if research is not None else [],
    })


class Engine:
    def __init__(
        self,
        settings: Settings,
        market_data: MarketDataStore,
        catalog: RuleCatalog,
        scorer: OpportunityScorer,
        assessor: ComplianceAssessor,
        events: EventBus,
        cache: ResultCache[ScoreResult],
        research: Optional[ResearchClient] = None,
        kafka: Optional[KafkaEventForwarder] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.settings = settings
        self.market_data = market_data
        self.catalog = catalog
        self.scorer = scorer
        self.assessor = assessor
        self.events = events
        self.cache = cache
        self.research = research
        self.kafka = kafka
        self.scheduler = scheduler
        self.started_at: Optional[float] = None

    # ── Scoring ──

    async def score_opportunity(self, asset: AssetRecord) -> ScoreResult:
        score = self.scorer.score(asset)
        assessment = self.assessor.assess(asset.id, EntityType.RWA, asset)
        research = await self._research(asset)
        enhanced = enhance_score(score, assessment, asset.nominal_yield, research)
        logger.info(
            "opportunity_scored",
            entity_id=asset.id,
            overall_score=round(enhanced.overall_score, 4),
            compliance_score=round(enhanced.compliance_score, 4),
            confidence=round(enhanced.confidence, 4),
            research_used=research is not None,
        )
        return enhanced

    async def _research(self, asset: AssetRecord) -> Optional[ResearchFindings]:
        if self.research is None:
            return None
        try:
            return await asyncio.wait_for(
                self.research.research_asset(asset),
                timeout=self.settings.external_timeout_seconds,
            )
        except (ExternalCollaboratorError, asyncio.TimeoutError) as e:
            logger.warning("research_unavailable", entity_id=asset.id, error=str(e) or type(e).__name__)
            return None

    # ── Compliance ──

    def assess_compliance(
        self,
        entity_id: str,
        entity_type: EntityType,
        record: AssetRecord | ProtocolRecord,
    ) -> ComplianceAssessment:
        return self.assessor.assess(entity_id, entity_type, record)

    def get_compliance_report(
        self,
        entity_ids: Optional[list[str]] = None,
        jurisdiction: Optional[str] = None,
        time_range: Optional[TimeRange] = None,
    ) -> ComplianceReport:
        return self.assessor.get_compliance_report(entity_ids, jurisdiction, time_range)

    def add_rule(self, rule: RuleCreate) -> ComplianceRule:
        return self.catalog.add_rule(rule)

    def update_rule(self, rule_id: str, **changes: Any) -> ComplianceRule:
        return self.catalog.update_rule(rule_id, **changes)

    def remove_rule(self, rule_id: str) -> bool:
        return self.catalog.remove_rule(rule_id)

    # ── Market data ──

    async def refresh_market_data(self) -> dict:
        return await self.market_data.refresh()

    # ── Lifecycle ──

    def start(self) -> None:
        self.started_at = time.monotonic()
        if self.scheduler is not None and not self.scheduler.running:
            jobs.register_jobs(self.scheduler, self, self.settings)
            self.scheduler.start()
        logger.info("engine_started", scheduler=self.scheduler is not None)

    async def shutdown(self) -> None:
        """Stop periodic jobs, clear the cache and close the Kafka producer. In-flight calls finish."""
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.cache.clear()
        if self.kafka is not None:
            await self.kafka.stop()
        self.started_at = None
        logger.info("engine_shutdown_complete")

    def get_status(self) -> dict:
        return {
            "running": self.started_at is not None,
            "uptime_seconds": round(time.monotonic() - self.started_at, 1) if self.started_at else 0.0,
            "engine_version": self.settings.engine_version,
            "cache_entries": len(self.cache),
            "benchmarks": sorted(self.market_data.benchmarks),
            "institutional_feeds": {
                feed_id: feed.last_update.isoformat() for feed_id, feed in self.market_data.institutional_feeds.items()
            },
            "scheduled_jobs": [job.id for job in self.scheduler.get_jobs()] if self.scheduler is not None else [],
            "compliance": self.assessor.get_status(),
        }


def build_engine(
    settings: Settings,
    *,
    evaluator: Optional[RuleEvaluator] = None,
    regulatory_source: Optional[RegulatorySource] = None,
    research: Optional[ResearchClient] = None,
    clock: Callable[[], float] = time.monotonic,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    rng: Optional[random.Random] = None,
) -> Engine:
    """
    Validate configuration, then wire one instance of every component.
    Raises ConfigurationError before anything is constructed.
    """
    validate_settings(settings)

    timeout = settings.external_timeout_seconds
    rng = rng or random.Random()

    events = EventBus()
    kafka = KafkaEventForwarder(settings) if settings.kafka_enabled else None
    if kafka is not None:
        events.subscribe("*", kafka)
    events.subscribe("alert_sent", LoggingNotifier())
    events.subscribe("alert_sent", WebhookNotifier(timeout_seconds=timeout))

    market_feed = HttpMarketFeed(settings.market_feed_url, timeout) if settings.market_feed_url else None
    market_data = MarketDataStore(
        market_feed,
        institutional_feeds_enabled=settings.institutional_feeds_enabled,
        timeout_seconds=timeout,
        now=now,
    )

    cache: ResultCache[ScoreResult] = ResultCache(settings.cache_ttl_ms / 1000, clock=clock)
    scorer = OpportunityScorer(settings, market_data, cache=cache, events=events, now=now)

    if regulatory_source is None:
        if settings.regulatory_feed_url:
            regulatory_source = HttpRegulatorySource(settings.regulatory_feed_url, timeout)
        else:
            regulatory_source = RandomRegulatorySource(settings.regulatory_change_probability, rng=rng, now=now)

    if research is None and settings.research_api_url:
        research = HttpResearchClient(settings.research_api_url, settings.research_api_key, timeout)

    catalog = RuleCatalog(now=now)
    dispatcher = AlertDispatcher(settings.alert_channels, events=events, now=now)
    assessor = ComplianceAssessor(
        catalog,
        evaluator or HeuristicRuleEvaluator(settings.rule_score_jitter, rng=rng),
        dispatcher,
        source=regulatory_source,
        events=events,
        jurisdictions=settings.jurisdictions,
        source_timeout_seconds=timeout,
        now=now,
    )

    engine = Engine(
        settings,
        market_data=market_data,
        catalog=catalog,
        scorer=scorer,
        assessor=assessor,
        events=events,
        cache=cache,
        research=research,
        kafka=kafka,
        scheduler=jobs.create_scheduler() if settings.scheduler_enabled else None,
    )
    logger.info(
        "engine_built",
        jurisdictions=settings.jurisdictions,
        rules=len(catalog),
        cache_enabled=settings.cache_enabled,
        kafka_enabled=settings.kafka_enabled,
        research_configured=research is not None,
    )
    return engine
