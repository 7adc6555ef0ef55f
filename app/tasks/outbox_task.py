"""Periodic Celery task that republishes messages stuck in the outbox."""

from __future__ import annotations

from app.commands.republish_pending_events_command import RepublishPendingEventsCommand
from app.core.app_state import get_state
from app.infra.celery_app import REPUBLISH_PENDING_EVENTS_TASK, celery_app


@celery_app.task(name=REPUBLISH_PENDING_EVENTS_TASK)
def republish_pending_events_task(limit: int = 500) -> int:
    """
    Publish events for stored messages that never reached the broker.
    Scheduled by celery beat every OUTBOX_SWEEP_INTERVAL_SECONDS.
    """
    state = get_state()
    with state.database.db_session() as db:
        command = RepublishPendingEventsCommand(
            db, state.publisher, settings=state.settings
        )
        return command.execute(limit=limit)
