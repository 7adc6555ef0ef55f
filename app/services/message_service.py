"""
Append-only message store with idempotent inbound writes.

Inbound messages are unique per (thread, provider message id); a redelivered
provider message raises DuplicateMessageError instead of adding a row.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import DuplicateMessageError
from app.models.message import DIRECTION_INCOMING, Message
from app.models.mixins import utcnow

logger = logging.getLogger(__name__)

MAX_TIMESTAMP_ATTEMPTS = 5


def now_ms() -> int:
    return int(time.time() * 1000)


class MessageService:
    """Create and read messages. Rows are only updated for the unread flag and publish marker."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def append(self, message: Message) -> Message:
        """
        Persist a message.

        The timestamp defaults to the next free millisecond in the thread; a
        collision with a concurrent writer is retried with the next value.

        Raises:
            DuplicateMessageError: an incoming message with the same provider
                id is already stored in the thread.
        """
        if message.direction == DIRECTION_INCOMING:
            if not message.provider_message_id:
                raise ValueError("Incoming messages require a provider_message_id")
            message.dedup_key = message.provider_message_id
            message.is_unread = True
        else:
            message.dedup_key = None
        if message.timestamp is None:
            message.timestamp = self.next_timestamp(message.thread_id)

        for attempt in range(MAX_TIMESTAMP_ATTEMPTS):
            self.db.add(message)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                if message.dedup_key:
                    existing = self.get_by_provider_id(
                        message.thread_id, message.provider_message_id
                    )
                    if existing is not None:
                        raise DuplicateMessageError(
                            message.thread_id,
                            message.provider_message_id,
                            existing=existing,
                        )
                if attempt == MAX_TIMESTAMP_ATTEMPTS - 1:
                    raise
                logger.info(
                    "Timestamp %s taken in thread %s, retrying",
                    message.timestamp,
                    message.thread_id,
                )
                message.timestamp = self.next_timestamp(message.thread_id)
                continue
            self.db.refresh(message)
            return message

    def next_timestamp(self, thread_id: str) -> int:
        latest = (
            self.db.query(func.max(Message.timestamp))
            .filter(Message.thread_id == thread_id)
            .scalar()
        )
        candidate = now_ms()
        if latest is not None and candidate <= latest:
            candidate = latest + 1
        return candidate

    def get_message(self, message_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def get_by_provider_id(
        self, thread_id: str, provider_message_id: str
    ) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.thread_id == thread_id,
                Message.dedup_key == provider_message_id,
            )
            .first()
        )

    def list_by_thread(
        self, thread_id: str, owner_user_ids: Optional[Sequence[str]] = None
    ) -> List[Message]:
        """All messages of a thread, oldest first, optionally limited to some owners."""
        query = self.db.query(Message).filter(Message.thread_id == thread_id)
        if owner_user_ids is not None:
            query = query.filter(Message.owner_user_id.in_(list(owner_user_ids)))
        return query.order_by(Message.timestamp.asc()).all()

    def latest_inbound(self, thread_id: str, limit: int = 5) -> List[Message]:
        """Most recent incoming messages, newest first."""
        return (
            self.db.query(Message)
            .filter(
                Message.thread_id == thread_id,
                Message.direction == DIRECTION_INCOMING,
            )
            .order_by(Message.timestamp.desc())
            .limit(limit)
            .all()
        )

    def oldest_inbound(self, thread_id: str) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.thread_id == thread_id,
                Message.direction == DIRECTION_INCOMING,
            )
            .order_by(Message.timestamp.asc())
            .first()
        )

    def list_threads_for_user(self, user_id: str) -> set[str]:
        """Thread ids the user owns messages in (owner_user_id index)."""
        rows = (
            self.db.query(Message.thread_id)
            .filter(Message.owner_user_id == user_id)
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def unread_count_for_thread(self, thread_id: str) -> int:
        return (
            self.db.query(Message)
            .filter(
                Message.thread_id == thread_id,
                Message.direction == DIRECTION_INCOMING,
                Message.is_unread.is_(True),
            )
            .count()
        )

    def mark_read(
        self, thread_id: str, message_ids: Optional[Sequence[str]] = None
    ) -> int:
        """
        Clear the unread flag for the given messages (internal or provider ids),
        or for every unread incoming message of the thread. Returns rows updated.
        """
        query = self.db.query(Message).filter(
            Message.thread_id == thread_id,
            Message.is_unread.is_(True),
        )
        if message_ids:
            ids = list(message_ids)
            query = query.filter(
                or_(Message.id.in_(ids), Message.provider_message_id.in_(ids))
            )
        else:
            query = query.filter(Message.direction == DIRECTION_INCOMING)
        updated = query.update({Message.is_unread: False}, synchronize_session=False)
        self.db.commit()
        return updated

    def mark_published(self, message: Message) -> None:
        """Record that the message's RawEvent reached the broker."""
        message.published_at = utcnow()
        self.db.commit()

    def list_unpublished(self, older_than: datetime, limit: int = 500) -> List[Message]:
        """Messages whose event never reached the broker, oldest first."""
        return (
            self.db.query(Message)
            .filter(
                Message.published_at.is_(None),
                Message.created_at < older_than,
            )
            .order_by(Message.created_at.asc())
            .limit(limit)
            .all()
        )
