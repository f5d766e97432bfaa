"""
Tests for periodic job registration and job failure containment.
"""
from rwa_engine.core.errors import ExternalCollaboratorError
from rwa_engine.engine import build_engine
from rwa_engine.services.scheduler import create_scheduler, job_market_data_refresh, register_jobs


class TestRegisterJobs:
    def test_three_jobs_with_configured_intervals(self, settings):
        scheduler = create_scheduler()
        register_jobs(scheduler, build_engine(settings), settings)

        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert sorted(jobs) == ["compliance_monitoring_cycle", "market_data_refresh", "regulatory_change_poll"]
        assert jobs["market_data_refresh"].trigger.interval.total_seconds() == 300
        assert jobs["compliance_monitoring_cycle"].trigger.interval.total_seconds() == 60

    def test_monitoring_job_skipped_when_disabled(self, settings):
        settings = settings.model_copy(update={"monitoring_enabled": False})
        scheduler = create_scheduler()
        register_jobs(scheduler, build_engine(settings), settings)
        assert sorted(job.id for job in scheduler.get_jobs()) == ["market_data_refresh", "regulatory_change_poll"]


class TestJobFailures:
    async def test_refresh_failure_is_contained(self, settings):
        engine = build_engine(settings)

        class FailingFeed:
            async def fetch_benchmarks(self):
                raise ExternalCollaboratorError("market feed unavailable")

        engine.market_data.feed = FailingFeed()
        await job_market_data_refresh(engine)
        assert engine.market_data.get("bonds") is not None
