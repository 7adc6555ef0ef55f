"""
Thread registry: stable thread ids per (owner user, external contact).

Creation is safe under concurrent first contact: the unique constraint on
(owner_user_id, contact_identifier) picks one winner and the loser re-reads
the winner's row once.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.contact_identifier import looks_like_legacy_identifier
from app.exceptions import ThreadAccessDeniedError, ThreadNotFoundError
from app.models.message import Message
from app.models.thread import Thread, ThreadParticipant, generate_thread_id
from app.services.message_service import MessageService

logger = logging.getLogger(__name__)


def _ms_to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


class ThreadService:
    def __init__(
        self,
        db: Session,
        message_service: Optional[MessageService] = None,
        legacy_lookup_enabled: Optional[bool] = None,
    ) -> None:
        self.db = db
        self._messages = message_service or MessageService(db)
        if legacy_lookup_enabled is None:
            legacy_lookup_enabled = get_settings().legacy_thread_lookup_enabled
        self._legacy_lookup_enabled = legacy_lookup_enabled

    def get_thread(self, thread_id: str) -> Optional[Thread]:
        return self.db.query(Thread).filter(Thread.id == thread_id).first()

    def get_thread_by_contact(
        self, owner_user_id: str, contact_identifier: str
    ) -> Optional[Thread]:
        return (
            self.db.query(Thread)
            .filter(
                Thread.owner_user_id == owner_user_id,
                Thread.contact_identifier == contact_identifier,
            )
            .first()
        )

    def resolve_or_create_thread(
        self,
        owner_user_id: str,
        contact_identifier: str,
        channel: Optional[str] = None,
    ) -> str:
        """Return the thread id for (owner, contact), creating the thread on first contact."""
        existing = self.get_thread_by_contact(owner_user_id, contact_identifier)
        if existing is not None:
            return existing.id

        thread = Thread(
            id=generate_thread_id(),
            owner_user_id=owner_user_id,
            contact_identifier=contact_identifier,
            channel=channel,
            message_count=0,
        )
        self.db.add(thread)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # Another writer created the row between our read and insert.
            winner = self.get_thread_by_contact(owner_user_id, contact_identifier)
            if winner is None:
                raise
            logger.info(
                "Thread create race for %s/%s resolved to %s",
                owner_user_id,
                contact_identifier,
                winner.id,
            )
            return winner.id
        logger.info(
            "Created thread %s for %s/%s", thread.id, owner_user_id, contact_identifier
        )
        return thread.id

    def user_has_access_to_thread(self, user_id: str, thread_id: str) -> bool:
        thread = self.get_thread(thread_id)
        if thread is None:
            return False
        if thread.owner_user_id == user_id:
            return True
        return user_id in thread.participants

    def ensure_access(self, user_id: str, thread_id: str) -> Thread:
        """Return the thread or raise ThreadAccessDeniedError."""
        if not self.user_has_access_to_thread(user_id, thread_id):
            raise ThreadAccessDeniedError(user_id, thread_id)
        return self.get_thread(thread_id)

    def add_participant(self, thread_id: str, user_id: str) -> Thread:
        """Append a user to the thread's participants. Idempotent."""
        thread = self.get_thread(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        if user_id not in thread.participants and user_id != thread.owner_user_id:
            thread.participants.append(user_id)
            self.db.commit()
            self.db.refresh(thread)
        return thread

    def record_message(self, thread_id: str, timestamp_ms: int, counted: bool) -> None:
        """
        Update thread metadata after a write.

        One UPDATE does both: last_message_at only moves forward and
        message_count is incremented in SQL, only for newly stored messages.
        """
        at = _ms_to_datetime(timestamp_ms).replace(tzinfo=None)
        values = {
            Thread.last_message_at: case(
                (
                    or_(Thread.last_message_at.is_(None), Thread.last_message_at < at),
                    at,
                ),
                else_=Thread.last_message_at,
            )
        }
        if counted:
            values[Thread.message_count] = Thread.message_count + 1
        found = (
            self.db.query(Thread)
            .filter(Thread.id == thread_id)
            .update(values, synchronize_session=False)
        )
        if not found:
            logger.warning("record_message for unknown thread %s", thread_id)
        self.db.commit()

    def list_messages(self, thread_id: str) -> List[Message]:
        """
        Messages of a thread, oldest first.

        Compatibility shim: threads created before opaque ids existed stored
        their messages under the raw contact address. When the canonical id
        has no messages and the legacy lookup is enabled, retry with that
        address, restricted to rows owned by the thread's owner or one of its
        participants. Remove once LEGACY_THREAD_LOOKUP_ENABLED is off everywhere.
        """
        messages = self._messages.list_by_thread(thread_id)
        if messages or not self._legacy_lookup_enabled:
            return messages

        thread = self.get_thread(thread_id)
        if thread is None or not looks_like_legacy_identifier(
            thread.contact_identifier
        ):
            return messages
        legacy_id = thread.contact_identifier
        if legacy_id == thread_id:
            return messages
        logger.info("Thread %s empty, falling back to legacy id %s", thread_id, legacy_id)
        return self._messages.list_by_thread(
            legacy_id,
            owner_user_ids=[thread.owner_user_id, *thread.participants],
        )

    def list_threads_for_user(self, user_id: str) -> List[Thread]:
        """Threads the user owns or participates in, most recently active first."""
        shared_ids = select(ThreadParticipant.thread_id).where(
            ThreadParticipant.user_id == user_id
        )
        conditions = [Thread.owner_user_id == user_id, Thread.id.in_(shared_ids)]
        owned_ids = self._messages.list_threads_for_user(user_id)
        if owned_ids:
            conditions.append(Thread.id.in_(list(owned_ids)))
        threads = self.db.query(Thread).filter(or_(*conditions)).all()
        return sorted(
            threads,
            key=lambda t: t.last_message_at or t.created_at,
            reverse=True,
        )
