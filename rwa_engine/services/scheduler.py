"""
Periodic background jobs, run by APScheduler on the service's event loop.

  market_data_refresh          every market_update_interval_ms
  regulatory_change_poll       every compliance_update_interval_ms
  compliance_monitoring_cycle  every monitoring_interval_ms (if monitoring_enabled)

Each job runs at most one instance at a time; missed runs coalesce into one.
Job failures are logged and the job stays scheduled.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from rwa_engine.core.config import Settings
from rwa_engine.core.errors import EngineError

if TYPE_CHECKING:
    from rwa_engine.engine import Engine

logger = structlog.get_logger()

JOB_DEFAULTS = {"max_instances": 1, "coalesce": True}


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)


async def job_market_data_refresh(engine: Engine) -> None:
    try:
        await engine.refresh_market_data()
    except EngineError as e:
        logger.error("job_market_data_refresh_failed", error=e.message, context=e.context)


async def job_regulatory_change_poll(engine: Engine) -> None:
    try:
        await engine.assessor.monitor_regulatory_changes()
    except EngineError as e:
        logger.error("job_regulatory_change_poll_failed", error=e.message, context=e.context)


async def job_compliance_monitoring_cycle(engine: Engine) -> None:
    try:
        engine.assessor.run_monitoring_cycle()
    except EngineError as e:
        logger.error("job_compliance_monitoring_cycle_failed", error=e.message, context=e.context)


def register_jobs(scheduler: AsyncIOScheduler, engine: Engine, settings: Settings) -> None:
    scheduler.add_job(
        job_market_data_refresh,
        "interval",
        id="market_data_refresh",
        seconds=settings.market_update_interval_ms / 1000,
        args=[engine],
        replace_existing=True,
    )

    scheduler.add_job(
        job_regulatory_change_poll,
        "interval",
        id="regulatory_change_poll",
        seconds=settings.compliance_update_interval_ms / 1000,
        args=[engine],
        replace_existing=True,
    )

    if settings.monitoring_enabled:
        scheduler.add_job(
            job_compliance_monitoring_cycle,
            "interval",
            id="compliance_monitoring_cycle",
            seconds=settings.monitoring_interval_ms / 1000,
            args=[engine],
            replace_existing=True,
        )

    logger.info("scheduler_jobs_registered", jobs=[job.id for job in scheduler.get_jobs()])
