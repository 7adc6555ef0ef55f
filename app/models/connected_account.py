"""ConnectedAccount model: which platform user owns a receiving address."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, UniqueConstraint

from app.db import Base
from app.models.mixins import TimestampMixin


class ConnectedAccount(Base, TimestampMixin):
    """Maps a channel address (mailbox, WhatsApp business number) to its owner."""

    __tablename__ = "connected_accounts"

    __table_args__ = (
        UniqueConstraint("channel", "address", name="uq_connected_accounts_address"),
    )

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    channel = Column(String(32), nullable=False)
    address = Column(String(320), nullable=False)
    user_id = Column(String(128), nullable=False, index=True)
