"""
Message model: append-only log of inbound and outbound messages per thread.

Rows are immutable apart from the unread flag and the publish marker. Query by thread_id ordered by
timestamp to rebuild a conversation; query by owner_user_id to list a user's
threads.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)

from app.db import Base
from app.models.mixins import JSONType, TimestampMixin

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


def generate_message_id() -> str:
    return uuid.uuid4().hex


class Message(Base, TimestampMixin):
    """Single message in a thread. timestamp is epoch milliseconds, unique per thread."""

    __tablename__ = "messages"

    __table_args__ = (
        UniqueConstraint("thread_id", "timestamp", name="uq_messages_thread_ts"),
        # dedup_key is the provider id for incoming rows and NULL otherwise,
        # so only inbound redeliveries collide.
        UniqueConstraint("thread_id", "dedup_key", name="uq_messages_thread_dedup"),
        Index("ix_messages_owner_user_thread", "owner_user_id", "thread_id"),
    )

    id = Column(String(64), primary_key=True, default=generate_message_id)
    thread_id = Column(String(320), nullable=False, index=True)
    timestamp = Column(BigInteger, nullable=False)
    provider_message_id = Column(String(512), nullable=True)
    dedup_key = Column(String(512), nullable=True)
    channel = Column(String(32), nullable=False)
    direction = Column(String(16), nullable=False)
    provider = Column(String(64), nullable=True)
    subject = Column(String(1024), nullable=True)
    body = Column(Text, nullable=True)
    html_body = Column(Text, nullable=True)
    headers = Column(JSONType, nullable=False, default=dict)
    send_result = Column(JSONType, nullable=True)
    from_address = Column(String(320), nullable=True)
    to_addresses = Column(JSONType, nullable=False, default=list)
    cc_addresses = Column(JSONType, nullable=False, default=list)
    owner_user_id = Column(String(128), nullable=False)
    is_unread = Column(Boolean, nullable=False, default=False)
    # Set once the RawEvent reached the broker; NULL rows are republished.
    published_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_incoming(self) -> bool:
        return self.direction == DIRECTION_INCOMING
