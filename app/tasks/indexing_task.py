"""Celery task that chunks, embeds and indexes EnrichedEvents."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import ValidationError

from app.commands.index_event_command import IndexEventCommand
from app.core.app_state import get_state
from app.infra.celery_app import INDEX_EVENT_TASK, celery_app
from app.infra.logging_config import get_logger
from app.schemas.events import EnrichedEvent
from app.services.vector_index_service import SqlVectorIndex

logger = get_logger("indexing_task")


@celery_app.task(bind=True, name=INDEX_EVENT_TASK)
def index_event_task(self, record: Dict) -> Optional[int]:
    """
    Index one EnrichedEvent. The task only completes, and is acknowledged,
    after the vectors are upserted; embedding or upsert failures retry.
    """
    try:
        event = EnrichedEvent.model_validate(record)
    except ValidationError as e:
        logger.warning("Invalid EnrichedEvent payload, dropping: %s", e)
        return None

    state = get_state()
    try:
        with state.database.db_session() as db:
            command = IndexEventCommand(
                state.embedder, SqlVectorIndex(db), settings=state.settings
            )
            return state.run(command.execute(event))
    except Exception as exc:
        retries = self.request.retries
        logger.warning(
            "Indexing of event %s failed (attempt %d): %s",
            event.event_id,
            retries + 1,
            exc,
        )
        raise self.retry(
            exc=exc,
            countdown=state.settings.task_retry_backoff_seconds * (2**retries),
            max_retries=state.settings.task_max_retries,
        )
