# Import celery app first
from celery.signals import worker_process_init, worker_process_shutdown

from app.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from app.infra.logging_config import LoggingConfig
from app.core.app_state import init_state, shutdown_state
from app.tasks.enrichment_task import enrich_event_batch_task, enrich_event_task
from app.tasks.indexing_task import index_event_task
from app.tasks.outbox_task import republish_pending_events_task

LoggingConfig()  # Initialize logging


@worker_process_init.connect
def _init_worker_state(**_kwargs) -> None:
    init_state()


@worker_process_shutdown.connect
def _shutdown_worker_state(**_kwargs) -> None:
    shutdown_state()


__all__ = [
    "celery_app",
    "enrich_event_batch_task",
    "enrich_event_task",
    "index_event_task",
    "republish_pending_events_task",
]
