"""Celery tasks that enrich RawEvents and forward them for indexing."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import ValidationError

from app.commands.enrich_event_command import BatchReport, EnrichEventCommand
from app.core.app_state import get_state
from app.exceptions import UpstreamUnavailableError
from app.infra.celery_app import (
    ENRICH_EVENT_BATCH_TASK,
    ENRICH_EVENT_TASK,
    celery_app,
)
from app.infra.logging_config import get_logger
from app.schemas.events import RawEvent

logger = get_logger("enrichment_task")


@celery_app.task(bind=True, name=ENRICH_EVENT_TASK)
def enrich_event_task(self, record: Dict) -> Optional[str]:
    """
    Enrich one RawEvent.

    Malformed records are logged and acknowledged. Any other failure (the
    indexing queue being unavailable) retries with exponential backoff.

    Returns:
        Optional[str]: the event id, or None for a malformed record.
    """
    try:
        raw = RawEvent.model_validate(record)
    except ValidationError as e:
        logger.warning("Invalid RawEvent payload, dropping: %s", e)
        return None

    state = get_state()
    command = EnrichEventCommand(
        state.description_generator,
        state.sentiment_analyzer,
        forward=state.publisher.publish_enriched,
        settings=state.settings,
    )
    try:
        state.run(command.execute(raw))
    except Exception as exc:
        retries = self.request.retries
        logger.warning(
            "Enrichment of event %s failed (attempt %d): %s",
            raw.event_id,
            retries + 1,
            exc,
        )
        raise self.retry(
            exc=exc,
            countdown=state.settings.task_retry_backoff_seconds * (2**retries),
            max_retries=state.settings.task_max_retries,
        )
    return raw.event_id


def failed_records(records: List[Dict], report: BatchReport) -> List[Dict]:
    """Records of the batch whose event id the report lists as failed."""
    failed = set(report.failed)
    return [
        record
        for record in records
        if isinstance(record, dict) and record.get("eventId") in failed
    ]


@celery_app.task(bind=True, name=ENRICH_EVENT_BATCH_TASK)
def enrich_event_batch_task(self, records: List[Dict]) -> List[str]:
    """
    Enrich a batch of RawEvents published by the outbox sweep.

    Malformed records are skipped. Only the records that failed are retried,
    so events already forwarded for indexing are not enriched twice.

    Returns:
        List[str]: ids of the events that were enriched and forwarded.
    """
    state = get_state()
    command = EnrichEventCommand(
        state.description_generator,
        state.sentiment_analyzer,
        forward=state.publisher.publish_enriched,
        settings=state.settings,
    )
    report = state.run(command.execute_batch(records))
    if report.skipped:
        logger.warning("Dropped %d malformed records from batch", len(report.skipped))
    if report.failed:
        retries = self.request.retries
        logger.warning(
            "Enrichment failed for %d of %d batched events (attempt %d)",
            len(report.failed),
            len(records),
            retries + 1,
        )
        raise self.retry(
            args=[failed_records(records, report)],
            exc=UpstreamUnavailableError(
                "indexing queue",
                f"{len(report.failed)} enriched events not forwarded",
            ),
            countdown=state.settings.task_retry_backoff_seconds * (2**retries),
            max_retries=state.settings.task_max_retries,
        )
    return report.processed
