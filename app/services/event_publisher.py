"""
Publishes pipeline events onto the Celery queues.

Ingestion must never fail because the queue is unavailable, so `publish`
logs and swallows transport errors; the message stays unpublished and the
outbox sweep retries it. `publish_batch` and `publish_enriched` run inside
workers and raise, so the record is retried instead of lost.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from app.config import get_settings
from app.events.message_events import build_raw_event
from app.infra.celery_app import (
    ENRICH_EVENT_BATCH_TASK,
    ENRICH_EVENT_TASK,
    INDEX_EVENT_TASK,
    celery_app,
)
from app.models.message import Message
from app.models.thread import Thread
from app.schemas.events import EnrichedEvent, RawEvent

logger = logging.getLogger(__name__)

PUBLISH_RETRY_POLICY = {
    "max_retries": 3,
    "interval_start": 0,
    "interval_step": 0.5,
    "interval_max": 2,
}


class EventTransport(Protocol):
    def send(self, task_name: str, body: Any, queue: str) -> None: ...


class CeleryEventTransport:
    """Sends event dicts as task arguments through the Celery broker."""

    def __init__(self, app=None) -> None:
        self._app = app or celery_app

    def send(self, task_name: str, body: Any, queue: str) -> None:
        self._app.send_task(
            task_name,
            args=[body],
            queue=queue,
            retry=True,
            retry_policy=PUBLISH_RETRY_POLICY,
        )


class EventPublisher:
    def __init__(
        self,
        transport: Optional[EventTransport] = None,
        enrichment_queue: Optional[str] = None,
        indexing_queue: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self._transport = transport or CeleryEventTransport()
        self._enrichment_queue = enrichment_queue or settings.enrichment_queue
        self._indexing_queue = indexing_queue or settings.indexing_queue
        self._source = source or settings.event_source

    def publish(self, message: Message, thread: Optional[Thread]) -> Optional[RawEvent]:
        """Emit the RawEvent for a stored message. Returns None if publishing failed."""
        try:
            event = build_raw_event(message, thread, source=self._source)
            self._transport.send(
                ENRICH_EVENT_TASK, event.to_message(), self._enrichment_queue
            )
        except Exception:
            logger.exception(
                "Failed to publish event for message %s in thread %s",
                message.id,
                message.thread_id,
            )
            return None
        logger.info(
            "Published %s event %s for thread %s",
            event.event_type,
            event.event_id,
            message.thread_id,
        )
        return event

    def publish_batch(
        self, pending: Sequence[Tuple[Message, Optional[Thread]]]
    ) -> List[RawEvent]:
        """
        Emit RawEvents for several stored messages as one enrichment batch.

        Used by the outbox sweep, which marks the messages published only if
        this returns, so transport errors propagate.
        """
        events = [
            build_raw_event(message, thread, source=self._source)
            for message, thread in pending
        ]
        if not events:
            return events
        self._transport.send(
            ENRICH_EVENT_BATCH_TASK,
            [event.to_message() for event in events],
            self._enrichment_queue,
        )
        logger.info("Published batch of %d pending events", len(events))
        return events

    def publish_enriched(self, event: EnrichedEvent) -> None:
        """Forward an enriched event to the indexing queue; errors propagate."""
        self._transport.send(INDEX_EVENT_TASK, event.to_message(), self._indexing_queue)
        logger.info("Forwarded enriched event %s for indexing", event.event_id)
