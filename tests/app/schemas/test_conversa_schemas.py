"""Tests for normalized message and event schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.schemas.conversa import (
    Channel,
    InboundMessage,
    OutboundMessage,
    OutboundSendResult,
)
from app.schemas.events import RawEvent


def test_channel_enum():
    assert Channel.EMAIL.value == "email"
    assert Channel.WHATSAPP.value == "whatsapp"


def test_inbound_message_minimal():
    msg = InboundMessage(
        channel=Channel.WHATSAPP,
        contact_identifier="+15557654321",
        provider_message_id="wamid.1",
    )
    assert msg.body == ""
    assert msg.headers == {}
    assert msg.to_addresses == []
    assert msg.owner_user_id is None


def test_outbound_message_needs_thread_or_contact():
    with pytest.raises(ValidationError):
        OutboundMessage(channel=Channel.EMAIL, user_id="u1", body="reply")

    msg = OutboundMessage(channel=Channel.EMAIL, user_id="u1", thread_id="t1", body="reply")
    assert msg.reply_to_message_id is None
    assert msg.cc == []


def test_outbound_send_result():
    r = OutboundSendResult(success=True, platform_message_id="789")
    assert r.success is True
    assert r.platform_message_id == "789"
    r2 = OutboundSendResult(success=False, platform_message_id=None)
    assert r2.success is False


def test_raw_event_uses_camel_case_on_the_wire():
    event = RawEvent(
        event_id="e1",
        timestamp=datetime(2024, 1, 5, tzinfo=timezone.utc),
        user_id="u1",
        event_type="email.received",
        data={"messageId": "<m@x>", "from": "a@example.com", "bodyText": "hi"},
    )

    wire = event.to_message()

    assert wire["eventId"] == "e1"
    assert wire["eventType"] == "email.received"
    assert wire["data"]["from"] == "a@example.com"
    assert wire["data"]["bodyText"] == "hi"
    assert RawEvent.model_validate(wire) == event
