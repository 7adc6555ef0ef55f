"""
Normalized message contracts.

Channel adapters convert provider payloads into InboundMessage; the send path
hands OutboundMessage to adapters. Stable and independent of downstream
consumers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class Channel(str, Enum):
    """Supported channels."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"


class Direction(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class InboundMessage(BaseModel):
    """Normalized inbound message (adapter → core)."""

    channel: Channel
    contact_identifier: str  # normalized sender address or phone number
    provider_message_id: str
    account_address: Optional[str] = None  # receiving mailbox / business number
    owner_user_id: Optional[str] = None  # set when the payload names the owner
    body: str = ""
    html_body: Optional[str] = None
    subject: Optional[str] = None
    headers: dict[str, Any] = Field(default_factory=dict)
    from_address: Optional[str] = None
    to_addresses: list[str] = Field(default_factory=list)
    cc_addresses: list[str] = Field(default_factory=list)
    provider: Optional[str] = None
    received_at: Optional[datetime] = None


class OutboundMessage(BaseModel):
    """Normalized outbound message (core → adapter)."""

    channel: Channel
    user_id: str
    thread_id: Optional[str] = None
    contact_identifier: Optional[str] = None  # email address or phone number
    body: str
    subject: Optional[str] = None
    html_body: Optional[str] = None
    cc: list[str] = Field(default_factory=list)
    reply_to_message_id: Optional[str] = (
        None  # filled by the reply resolver; omit to start a new conversation
    )

    @model_validator(mode="after")
    def _require_recipient(self) -> "OutboundMessage":
        if not self.thread_id and not self.contact_identifier:
            raise ValueError("Either thread_id or contact_identifier is required")
        return self


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional provider ids)."""

    success: bool
    platform_message_id: Optional[str] = None
    platform_thread_id: Optional[str] = None
    sender_address: Optional[str] = None
