"""Celery application used as the durable event transport between pipeline stages."""

from __future__ import annotations

from celery import Celery

from app.config import get_settings

ENRICH_EVENT_TASK = "app.tasks.enrichment_task.enrich_event_task"
INDEX_EVENT_TASK = "app.tasks.indexing_task.index_event_task"
ENRICH_EVENT_BATCH_TASK = "app.tasks.enrichment_task.enrich_event_batch_task"
REPUBLISH_PENDING_EVENTS_TASK = "app.tasks.outbox_task.republish_pending_events_task"

settings = get_settings()

celery_app = Celery(
    settings.app_name,
    broker=settings.broker_url,
    include=["app.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_ignore_result=True,
    # Ack only after the handler returns so a crashed worker gets redelivered.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_routes={
        ENRICH_EVENT_TASK: {"queue": settings.enrichment_queue},
        INDEX_EVENT_TASK: {"queue": settings.indexing_queue},
        ENRICH_EVENT_BATCH_TASK: {"queue": settings.enrichment_queue},
        REPUBLISH_PENDING_EVENTS_TASK: {"queue": settings.enrichment_queue},
    },
    beat_schedule={
        "republish-pending-events": {
            "task": REPUBLISH_PENDING_EVENTS_TASK,
            "schedule": settings.outbox_sweep_interval_seconds,
        },
    },
)
