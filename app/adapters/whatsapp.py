"""
WhatsApp Cloud API adapter.

Parses webhook deliveries (entry[].changes[].value.messages[]) and sends text
messages through the Graph API with httpx.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.adapters.base import BasePlatformAdapter, header_value, require_field
from app.core.contact_identifier import normalize_phone_number
from app.exceptions import MalformedPayloadError
from app.schemas.conversa import (
    Channel,
    InboundMessage,
    OutboundMessage,
    OutboundSendResult,
)
from app.schemas.whatsapp import WhatsAppMessage, WhatsAppValue, WhatsAppWebhookPayload

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SUBSCRIBE_MODE = "subscribe"


class WhatsAppAdapter(BasePlatformAdapter):
    """WhatsApp adapter: verify webhooks, parse messages, send via Graph API."""

    def __init__(
        self,
        verify_token: Optional[str] = None,
        app_secret: Optional[str] = None,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_base: str = "https://graph.facebook.com/v19.0",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._verify_token = verify_token
        self._app_secret = app_secret
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._client = client

    def verify_subscription(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> Optional[str]:
        """Return the challenge to echo if the handshake is valid, else None."""
        if not self._verify_token:
            return None
        if mode == SUBSCRIBE_MODE and token == self._verify_token and challenge:
            return challenge
        return None

    def verify_webhook(
        self, body: bytes, request_headers: Optional[dict[str, str]] = None
    ) -> bool:
        """Validate X-Hub-Signature-256 if an app secret is configured."""
        if not self._app_secret:
            return True
        signature = header_value(request_headers, SIGNATURE_HEADER)
        if not signature or not signature.startswith("sha256="):
            return False
        expected = hmac.new(
            self._app_secret.encode("utf-8"), body, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(signature[len("sha256=") :], expected)

    def split_records(self, raw_payload: Any) -> list[tuple[WhatsAppValue, dict]]:
        try:
            payload = WhatsAppWebhookPayload.model_validate(raw_payload)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid WhatsApp payload: {e}") from e
        records = []
        for entry in payload.entry:
            for change in entry.changes:
                for message in change.value.messages:
                    records.append((change.value, message))
        return records

    def parse_record(self, record: tuple[WhatsAppValue, dict]) -> InboundMessage:
        value, raw_message = record
        try:
            message = WhatsAppMessage.model_validate(raw_message)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid WhatsApp message: {e}") from e
        message_id = require_field(message.id, "id")
        sender = normalize_phone_number(require_field(message.from_, "from"))
        business_number = value.metadata.display_phone_number
        headers: dict[str, Any] = {"Message-ID": message_id}
        if message.context and message.context.id:
            headers["In-Reply-To"] = message.context.id
        body = message.text.body if message.text else ""
        return InboundMessage(
            channel=Channel.WHATSAPP,
            contact_identifier=sender,
            provider_message_id=message_id,
            account_address=(
                normalize_phone_number(business_number) if business_number else None
            ),
            body=body,
            headers=headers,
            from_address=sender,
            to_addresses=(
                [normalize_phone_number(business_number)] if business_number else []
            ),
            provider="whatsapp",
            received_at=_parse_epoch(message.timestamp),
        )

    async def send(
        self, outbound: OutboundMessage, recipient: str
    ) -> OutboundSendResult:
        """Send a text message. recipient is the contact phone number."""
        if outbound.channel != Channel.WHATSAPP:
            return OutboundSendResult(success=False)

        payload: dict[str, Any] = {
            "messaging_product": "whatsapp",
            "to": recipient.lstrip("+"),
            "type": "text",
            "text": {"body": outbound.body},
        }
        if outbound.reply_to_message_id:
            payload["context"] = {"message_id": outbound.reply_to_message_id}

        url = f"{self._api_base}/{self._phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("WhatsApp send to %s failed: %s", recipient, e)
            return OutboundSendResult(success=False)

        messages = data.get("messages") or []
        message_id = messages[0].get("id") if messages else None
        return OutboundSendResult(
            success=True,
            platform_message_id=message_id,
            sender_address=self._phone_number_id,
        )


def _parse_epoch(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None
