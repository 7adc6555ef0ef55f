"""
Command to ingest one normalized inbound message.

Resolves the thread, stores the message idempotently, updates thread metadata
and publishes the RawEvent. A message is marked published only once its event
reached the broker; a redelivered provider message is reported as a duplicate
and republished only if its first publish never went through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import DuplicateMessageError
from app.models.message import DIRECTION_INCOMING, Message
from app.schemas.conversa import InboundMessage
from app.schemas.events import RawEvent
from app.services.event_publisher import EventPublisher
from app.services.message_service import MessageService
from app.services.thread_service import ThreadService

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    thread_id: str
    message: Message
    duplicate: bool = False
    event: Optional[RawEvent] = None


class IngestMessageCommand:
    def __init__(self, db: Session, publisher: EventPublisher) -> None:
        self.db = db
        self.publisher = publisher
        self.message_service = MessageService(db)
        self.thread_service = ThreadService(db, message_service=self.message_service)

    def execute(self, inbound: InboundMessage, owner_user_id: str) -> IngestResult:
        channel = inbound.channel.value
        thread_id = self.thread_service.resolve_or_create_thread(
            owner_user_id, inbound.contact_identifier, channel=channel
        )
        message = Message(
            thread_id=thread_id,
            provider_message_id=inbound.provider_message_id,
            channel=channel,
            direction=DIRECTION_INCOMING,
            provider=inbound.provider,
            subject=inbound.subject,
            body=inbound.body,
            html_body=inbound.html_body,
            headers=dict(inbound.headers),
            from_address=inbound.from_address or inbound.contact_identifier,
            to_addresses=list(inbound.to_addresses),
            cc_addresses=list(inbound.cc_addresses),
            owner_user_id=owner_user_id,
        )

        duplicate = False
        try:
            message = self.message_service.append(message)
        except DuplicateMessageError as exc:
            logger.info(
                "Duplicate %s message %s in thread %s",
                channel,
                inbound.provider_message_id,
                thread_id,
            )
            duplicate = True
            message = exc.existing

        self.thread_service.record_message(
            thread_id, message.timestamp, counted=not duplicate
        )
        event = None
        if message.published_at is None:
            event = self._publish(message, thread_id)
        return IngestResult(
            thread_id=thread_id, message=message, duplicate=duplicate, event=event
        )

    def _publish(self, message: Message, thread_id: str) -> Optional[RawEvent]:
        thread = self.thread_service.get_thread(thread_id)
        event = self.publisher.publish(message, thread)
        if event is not None:
            self.message_service.mark_published(message)
        return event
