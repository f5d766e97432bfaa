"""
Event channel: in-process fan-out plus a fire-and-forget Kafka forwarder.

The scorer, assessor and alert dispatcher publish typed events onto an
EventBus. Subscribers (Kafka forwarder, notification channels, tests) are
isolated from each other: a failing subscriber is logged and never breaks
the publishing call.
"""
from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from typing import Any, Callable, Coroutine, Optional, Protocol

import structlog

from rwa_engine.core.config import Settings
from rwa_engine.schemas.events import EngineEvent

logger = structlog.get_logger()

Subscriber = Callable[[EngineEvent], None]

_background_tasks: set[asyncio.Task] = set()


def spawn(coro: Coroutine[Any, Any, Any], *, label: str) -> Optional[asyncio.Task]:
    """
    Schedule a coroutine on the running loop without awaiting it.
    Outside an event loop the coroutine is closed and skipped.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.debug("background_task_skipped_no_loop", task=label)
        return None
    task = loop.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class EventSink(Protocol):
    def publish(self, event: EngineEvent) -> None: ...


class EventBus:
    """Synchronous observer channel keyed by event_type ("*" receives everything)."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: str, subscriber: Subscriber) -> None:
        self._subscribers[event_type].append(subscriber)

    def unsubscribe(self, event_type: str, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers.get(event_type, []):
            self._subscribers[event_type].remove(subscriber)

    def publish(self, event: EngineEvent) -> None:
        for subscriber in [*self._subscribers.get(event.event_type, []), *self._subscribers.get("*", [])]:
            try:
                subscriber(event)
            except Exception as e:
                # Subscribers are downstream collaborators: log, never propagate
                logger.warning(
                    "event_subscriber_failed",
                    event_type=event.event_type,
                    subscriber=getattr(subscriber, "__name__", type(subscriber).__name__),
                    error=str(e),
                )


class RecordingSink:
    """Collects events in memory, for replay and assertions."""

    def __init__(self) -> None:
        self.events: list[EngineEvent] = []

    def __call__(self, event: EngineEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[EngineEvent]:
        return [e for e in self.events if e.event_type == event_type]


class KafkaEventForwarder:
    """
    Forwards every engine event to Kafka, fire-and-forget.
    Gracefully degrades if Kafka is disabled or unavailable.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._producer = None

    async def _get_producer(self):
        if not self.settings.kafka_enabled:
            return None
        if self._producer is None:
            from aiokafka import AIOKafkaProducer
            self._producer = AIOKafkaProducer(bootstrap_servers=self.settings.kafka_bootstrap)
            await self._producer.start()
        return self._producer

    def __call__(self, event: EngineEvent) -> None:
        if not self.settings.kafka_enabled:
            return
        spawn(self.send(event), label="kafka_forward")

    async def send(self, event: EngineEvent) -> None:
        try:
            producer = await self._get_producer()
            if producer:
                await producer.send_and_wait(
                    self.settings.kafka_topic_engine_events,
                    json.dumps(event.model_dump(mode="json")).encode("utf-8"),
                    key=event.event_type.encode("utf-8"),
                )
                logger.debug("kafka_event_published", event_type=event.event_type)
        except Exception as e:
            # Fire-and-forget: log but don't fail the request
            logger.warning("kafka_publish_failed", event_type=event.event_type, error=str(e))

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
