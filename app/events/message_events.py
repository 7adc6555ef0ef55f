"""Build pipeline events from stored messages."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from app.models.message import Message
from app.models.thread import Thread
from app.schemas.events import RawEvent, RawEventData

RECEIVED = "received"
SENT = "sent"


def event_type_for(message: Message) -> str:
    """`{channel}.received` for incoming messages, `{channel}.sent` otherwise."""
    suffix = RECEIVED if message.is_incoming else SENT
    return f"{message.channel}.{suffix}"


def build_raw_event(
    message: Message, thread: Thread | None, source: str = "inbox-service"
) -> RawEvent:
    """RawEvent for one stored message, attributed to the thread owner."""
    if message.is_incoming:
        recipients = message.to_addresses or []
    else:
        recipients = (message.to_addresses or []) or (
            [thread.contact_identifier] if thread is not None else []
        )
    data = RawEventData(
        message_id=message.provider_message_id or message.id,
        thread_id=message.thread_id,
        subject=message.subject,
        body_text=message.body or "",
        body_html=message.html_body or "",
        from_=message.from_address,
        to=list(recipients),
        headers=dict(message.headers or {}),
        provider=message.provider,
        direction=message.direction,
    )
    user_id = thread.owner_user_id if thread is not None else message.owner_user_id
    return RawEvent(
        event_id=uuid.uuid4().hex,
        timestamp=datetime.fromtimestamp(message.timestamp / 1000, tz=timezone.utc),
        source=source,
        user_id=user_id,
        event_type=event_type_for(message),
        data=data,
    )
