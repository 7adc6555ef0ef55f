"""
Outbound API: send messages to contacts on their channel.

Internal consumers POST normalized outbound messages; the send path resolves
the thread and reply target, sends, persists on success, and returns
{"data": {...}}.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.commands.outbound.send_outbound_command import SendOutboundCommand
from app.db import get_db
from app.routers.utils.dependencies import get_event_publisher
from app.schemas.conversa import OutboundMessage
from app.services.event_publisher import EventPublisher

router = APIRouter(prefix="/outbound", tags=["outbound"])


@router.post("", response_model=dict[str, Any])
async def send_outbound(
    body: OutboundMessage,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> dict[str, Any]:
    """Send an outbound message; replies thread against the latest usable inbound message."""
    command = SendOutboundCommand(db, publisher)
    return await command.execute(body)
