"""
Email webhook payload schemas.

Mirrors the Gmail API message resource as relayed by the mailbox watcher,
optionally wrapped with the owning user id.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class GmailHeader(BaseModel):
    name: str
    value: str = ""


class GmailBody(BaseModel):
    data: Optional[str] = None  # base64url
    size: Optional[int] = None


class GmailPart(BaseModel):
    mimeType: Optional[str] = None
    body: GmailBody = Field(default_factory=GmailBody)
    parts: list["GmailPart"] = Field(default_factory=list)


class GmailPayload(BaseModel):
    mimeType: Optional[str] = None
    headers: list[GmailHeader] = Field(default_factory=list)
    body: GmailBody = Field(default_factory=GmailBody)
    parts: list[GmailPart] = Field(default_factory=list)


class GmailMessage(BaseModel):
    id: str
    threadId: Optional[str] = None
    snippet: str = ""
    payload: GmailPayload = Field(default_factory=GmailPayload)


class EmailWebhookEnvelope(BaseModel):
    """Wrapped form: {userId, gmail_account_id, email, gmail_data}."""

    userId: Optional[str] = None
    gmail_account_id: Optional[str] = None
    email: Optional[str] = None
    gmail_data: GmailMessage
