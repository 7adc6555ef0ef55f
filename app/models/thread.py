"""Thread model: one conversation bucket per (owner user, external contact)."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


def generate_thread_id() -> str:
    return uuid.uuid4().hex


class ThreadParticipant(Base):
    """A user the thread is shared with. Indexed by user for the list endpoint."""

    __tablename__ = "thread_participants"

    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_thread_participants"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(
        String(64), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(128), nullable=False, index=True)


class Thread(Base, TimestampMixin):
    """
    Summary record for a conversation (a.k.a. flow).

    At most one row exists per (owner_user_id, contact_identifier); concurrent
    first-contact writers race on that unique constraint.
    """

    __tablename__ = "threads"

    __table_args__ = (
        UniqueConstraint(
            "owner_user_id",
            "contact_identifier",
            name="uq_threads_owner_contact",
        ),
    )

    id = Column(String(64), primary_key=True, default=generate_thread_id)
    owner_user_id = Column(String(128), nullable=False, index=True)
    contact_identifier = Column(String(320), nullable=False)
    channel = Column(String(32), nullable=True)
    message_count = Column(Integer, nullable=False, default=0)
    last_message_at = Column(DateTime, nullable=True)

    participant_rows = relationship(
        "ThreadParticipant",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ThreadParticipant.id",
    )
    # List of participant user ids; reads and writes go through participant_rows.
    participants = association_proxy(
        "participant_rows",
        "user_id",
        creator=lambda user_id: ThreadParticipant(user_id=user_id),
    )
