"""
Webhook routes for inbound channel deliveries.

Providers POST raw deliveries here; every record is parsed, attributed to its
owner and ingested. Per-record failures are counted, not raised.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.commands.webhooks import EmailWebhookCommand, WhatsAppWebhookCommand
from app.db import get_db
from app.routers.utils.dependencies import get_event_publisher
from app.services.event_publisher import EventPublisher

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/whatsapp", response_class=PlainTextResponse)
def whatsapp_verify(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> str:
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    command = WhatsAppWebhookCommand(db, publisher)
    return command.verify_subscription(mode, token, challenge)


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> dict[str, Any]:
    """Receive WhatsApp deliveries. Validates X-Hub-Signature-256 when an app secret is set."""
    command = WhatsAppWebhookCommand(db, publisher)
    return await command.execute(request)


@router.post("/email")
async def email_webhook(
    request: Request,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> dict[str, Any]:
    """Receive relayed Gmail messages, bare or wrapped as {userId, gmail_data}."""
    command = EmailWebhookCommand(db, publisher)
    return await command.execute(request)
