"""
Shared fixtures: deterministic clocks and settings with no outbound I/O.
"""
import pytest

from rwa_engine.core.config import Settings
from rwa_engine.schemas.compliance import ChannelType


class FakeClock:
    """Monotonic stand-in: advance() moves time forward by seconds."""

    def __init__(self, start: float = 1_000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        auth_enabled=False,
        audit_enabled=False,
        kafka_enabled=False,
        scheduler_enabled=False,
        research_api_url=None,
        market_feed_url=None,
        regulatory_feed_url=None,
    )


@pytest.fixture
def engine_settings(settings) -> Settings:
    """settings without the webhook channel, so no alert leaves the process."""
    return settings.model_copy(update={
        "alert_channels": [c for c in settings.alert_channels if c.type != ChannelType.WEBHOOK],
    })
