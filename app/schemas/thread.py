"""Pydantic schemas for threads and messages (read API)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ThreadRead(BaseModel):
    id: str
    owner_user_id: str
    contact_identifier: str
    channel: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    message_count: int = 0
    last_message_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("participants", mode="before")
    @classmethod
    def _participants_as_list(cls, value: Any) -> list[str]:
        # ORM rows expose participants through an association proxy.
        return list(value or [])


class ThreadListRow(ThreadRead):
    """Thread row for list endpoints with its unread count."""

    unread_count: int = 0
    has_unread_messages: bool = False


class MessageRead(BaseModel):
    id: str
    thread_id: str
    timestamp: int
    provider_message_id: Optional[str] = None
    channel: str
    direction: str
    provider: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    headers: dict[str, Any] = Field(default_factory=dict)
    from_address: Optional[str] = None
    to_addresses: list[str] = Field(default_factory=list)
    cc_addresses: list[str] = Field(default_factory=list)
    is_unread: bool = False

    model_config = {"from_attributes": True}


class MarkReadRequest(BaseModel):
    """Mark specific messages (internal or provider ids) or, when omitted, all unread."""

    message_ids: Optional[list[str]] = None


class ParticipantAdd(BaseModel):
    user_id: str
