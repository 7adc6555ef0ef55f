"""Tests for WhatsAppAdapter."""

import hashlib
import hmac
import json

import httpx
import pytest

from app.adapters.whatsapp import WhatsAppAdapter
from app.exceptions import MalformedPayloadError
from app.schemas.conversa import Channel, OutboundMessage


def whatsapp_delivery(*messages, business_number="15550001111"):
    """Cloud API webhook delivery carrying the given messages."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {
                                "display_phone_number": business_number,
                                "phone_number_id": "100200300",
                            },
                            "messages": list(messages),
                        },
                    }
                ],
            }
        ],
    }


def text_message(message_id="wamid.1", sender="15557654321", body="hello", **extra):
    return {
        "id": message_id,
        "from": sender,
        "timestamp": "1704463389",
        "type": "text",
        "text": {"body": body},
        **extra,
    }


@pytest.fixture
def adapter():
    return WhatsAppAdapter(
        verify_token="verify-token",
        app_secret="app-secret",
        access_token="token",
        phone_number_id="100200300",
    )


def test_parse_webhook_normalizes_message(adapter):
    [message] = adapter.parse_webhook(whatsapp_delivery(text_message()))

    assert message.channel == Channel.WHATSAPP
    assert message.contact_identifier == "+15557654321"
    assert message.account_address == "+15550001111"
    assert message.provider_message_id == "wamid.1"
    assert message.body == "hello"
    assert message.headers == {"Message-ID": "wamid.1"}
    assert message.received_at.year == 2024


def test_reply_context_becomes_in_reply_to(adapter):
    reply = text_message(message_id="wamid.2", context={"id": "wamid.1"})

    [message] = adapter.parse_webhook(whatsapp_delivery(reply))

    assert message.headers["In-Reply-To"] == "wamid.1"


def test_malformed_record_raises(adapter):
    records = adapter.split_records(
        whatsapp_delivery(text_message(), {"type": "text", "text": {"body": "x"}})
    )

    assert len(records) == 2
    adapter.parse_record(records[0])
    with pytest.raises(MalformedPayloadError):
        adapter.parse_record(records[1])


def test_status_only_delivery_has_no_records(adapter):
    assert adapter.split_records(whatsapp_delivery()) == []


def test_verify_subscription(adapter):
    assert adapter.verify_subscription("subscribe", "verify-token", "42") == "42"
    assert adapter.verify_subscription("subscribe", "wrong", "42") is None
    assert adapter.verify_subscription("unsubscribe", "verify-token", "42") is None


def test_verify_webhook_signature(adapter):
    body = json.dumps(whatsapp_delivery(text_message())).encode()
    digest = hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()

    assert adapter.verify_webhook(body, {"x-hub-signature-256": f"sha256={digest}"})
    assert not adapter.verify_webhook(body, {"X-Hub-Signature-256": "sha256=bad"})
    assert not adapter.verify_webhook(body, {})


def test_verify_webhook_without_secret_accepts():
    adapter = WhatsAppAdapter(verify_token="verify-token")

    assert adapter.verify_webhook(b"{}", {}) is True


async def test_send_posts_text_message(adapter):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["json"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        adapter._client = client
        result = await adapter.send(
            OutboundMessage(
                channel=Channel.WHATSAPP,
                user_id="u1",
                body="thanks!",
                reply_to_message_id="wamid.1",
            ),
            "+15557654321",
        )

    assert result.success is True
    assert result.platform_message_id == "wamid.out"
    assert captured["url"].endswith("/100200300/messages")
    assert captured["auth"] == "Bearer token"
    assert captured["json"]["to"] == "15557654321"
    assert captured["json"]["text"] == {"body": "thanks!"}
    assert captured["json"]["context"] == {"message_id": "wamid.1"}


async def test_send_failure_returns_unsuccessful(adapter):
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    async with httpx.AsyncClient(transport=transport) as client:
        adapter._client = client
        result = await adapter.send(
            OutboundMessage(channel=Channel.WHATSAPP, user_id="u1", body="x"),
            "+15557654321",
        )

    assert result.success is False
