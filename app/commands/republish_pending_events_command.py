"""
Outbox sweep: republish messages whose RawEvent never reached the broker.

Messages are stored before their event is published; if the broker was down
the row keeps `published_at` NULL. The sweep picks those rows up once they are
older than the grace period, publishes them in batches and marks each batch
published only after the send returned.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.message import Message
from app.models.mixins import utcnow
from app.models.thread import Thread
from app.services.event_publisher import EventPublisher
from app.services.message_service import MessageService
from app.services.thread_service import ThreadService

logger = logging.getLogger(__name__)


class RepublishPendingEventsCommand:
    def __init__(
        self,
        db: Session,
        publisher: EventPublisher,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.publisher = publisher
        self.settings = settings or get_settings()
        self.message_service = MessageService(db)
        self.thread_service = ThreadService(db, message_service=self.message_service)

    def execute(self, limit: int = 500) -> int:
        """
        Republish up to `limit` pending messages. Returns how many were published.

        A batch whose send fails stays pending for the next sweep; batches
        already sent keep their marker.
        """
        cutoff = utcnow() - timedelta(seconds=self.settings.outbox_grace_seconds)
        pending = self.message_service.list_unpublished(cutoff, limit=limit)
        if not pending:
            return 0

        threads: Dict[str, Optional[Thread]] = {}
        size = self.settings.outbox_batch_size
        published = 0
        for start in range(0, len(pending), size):
            batch: List[Message] = pending[start : start + size]
            pairs = [(message, self._thread(threads, message.thread_id)) for message in batch]
            try:
                self.publisher.publish_batch(pairs)
            except Exception:
                logger.exception(
                    "Failed to republish %d pending events; retrying next sweep",
                    len(batch),
                )
                break
            for message in batch:
                self.message_service.mark_published(message)
            published += len(batch)

        logger.info("Republished %d of %d pending events", published, len(pending))
        return published

    def _thread(self, cache: Dict[str, Optional[Thread]], thread_id: str) -> Optional[Thread]:
        if thread_id not in cache:
            cache[thread_id] = self.thread_service.get_thread(thread_id)
        return cache[thread_id]
