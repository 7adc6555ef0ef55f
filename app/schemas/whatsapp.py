"""
WhatsApp Cloud API webhook payload schemas.

Messages are kept as raw dicts at the envelope level so one unparseable
message does not reject the rest of the delivery.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class WhatsAppMetadata(BaseModel):
    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class WhatsAppValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: WhatsAppMetadata = Field(default_factory=WhatsAppMetadata)
    contacts: list[dict[str, Any]] = Field(default_factory=list)
    messages: list[dict[str, Any]] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppValue = Field(default_factory=WhatsAppValue)


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = Field(default_factory=list)


class WhatsAppWebhookPayload(BaseModel):
    """Root object posted by the WhatsApp Cloud API."""

    object: Optional[str] = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)


class WhatsAppText(BaseModel):
    body: str = ""


class WhatsAppContext(BaseModel):
    id: Optional[str] = None


class WhatsAppMessage(BaseModel):
    """A single inbound message (value.messages[i])."""

    id: str
    from_: str = Field(alias="from")
    timestamp: Optional[str] = None
    type: str = "text"
    text: Optional[WhatsAppText] = None
    context: Optional[WhatsAppContext] = None

    model_config = {"populate_by_name": True}
