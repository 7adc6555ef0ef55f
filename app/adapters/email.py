"""
Email adapter.

Inbound: Gmail API message resources relayed by the mailbox watcher, either
bare or wrapped as {userId, gmail_account_id, email, gmail_data}.
Outbound: an HTTP send relay that speaks SMTP/Gmail on our behalf.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.adapters.base import BasePlatformAdapter, header_value
from app.core.contact_identifier import extract_email_address, parse_email_list
from app.exceptions import MalformedPayloadError
from app.schemas.conversa import (
    Channel,
    InboundMessage,
    OutboundMessage,
    OutboundSendResult,
)
from app.schemas.email import EmailWebhookEnvelope, GmailMessage, GmailPart

logger = logging.getLogger(__name__)

NO_SUBJECT = "(no subject)"
THREADING_HEADERS = ("References", "In-Reply-To", "Date")


def decode_base64url(data: Optional[str]) -> str:
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _collect_bodies(parts: list[GmailPart], found: dict[str, str]) -> None:
    for part in parts:
        if part.mimeType in ("text/plain", "text/html") and part.body.data:
            found.setdefault(part.mimeType, decode_base64url(part.body.data))
        if part.parts:
            _collect_bodies(part.parts, found)


def format_message_id(message_id: str) -> str:
    """Wrap a Message-ID in angle brackets as required by In-Reply-To."""
    message_id = message_id.strip()
    if message_id.startswith("<") and message_id.endswith(">"):
        return message_id
    return f"<{message_id}>"


class EmailAdapter(BasePlatformAdapter):
    """Email adapter: parse Gmail webhook messages, send through the relay."""

    def __init__(
        self,
        send_api_url: Optional[str] = None,
        send_api_key: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._send_api_url = send_api_url
        self._send_api_key = send_api_key
        self._timeout = timeout
        self._client = client

    def split_records(self, raw_payload: Any) -> list[Any]:
        if isinstance(raw_payload, list):
            return raw_payload
        if isinstance(raw_payload, dict):
            return [raw_payload]
        raise MalformedPayloadError("Email webhook body must be an object or a list")

    def parse_record(self, record: Any) -> InboundMessage:
        if not isinstance(record, dict):
            raise MalformedPayloadError("Email record must be an object")
        owner_user_id = None
        try:
            if "gmail_data" in record:
                envelope = EmailWebhookEnvelope.model_validate(record)
                owner_user_id = envelope.userId
                gmail = envelope.gmail_data
            else:
                gmail = GmailMessage.model_validate(record)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid Gmail message: {e}") from e

        headers: dict[str, str] = {h.name: h.value for h in gmail.payload.headers}
        from_address = extract_email_address(header_value(headers, "From"))
        to_addresses = parse_email_list(header_value(headers, "To"))
        if not from_address or not to_addresses:
            raise MalformedPayloadError(
                f"Gmail message {gmail.id} is missing From or To addresses"
            )
        cc_addresses = parse_email_list(header_value(headers, "Cc"))
        subject = header_value(headers, "Subject") or NO_SUBJECT
        message_id = header_value(headers, "Message-ID") or gmail.id

        text_body, html_body = self._extract_bodies(gmail)
        standard_headers: dict[str, Any] = {
            "Message-ID": message_id,
            "From": header_value(headers, "From") or from_address,
            "To": header_value(headers, "To") or ", ".join(to_addresses),
            "Subject": subject,
        }
        for name in THREADING_HEADERS:
            value = header_value(headers, name)
            if value:
                standard_headers[name] = value
        if gmail.threadId:
            standard_headers["Gmail-Thread-ID"] = gmail.threadId

        return InboundMessage(
            channel=Channel.EMAIL,
            contact_identifier=from_address,
            provider_message_id=message_id,
            account_address=to_addresses[0],
            owner_user_id=owner_user_id,
            body=text_body,
            html_body=html_body or None,
            subject=subject,
            headers=standard_headers,
            from_address=from_address,
            to_addresses=to_addresses,
            cc_addresses=cc_addresses,
            provider="gmail",
        )

    def _extract_bodies(self, gmail: GmailMessage) -> tuple[str, str]:
        payload = gmail.payload
        text_body = ""
        html_body = ""
        if payload.body.data:
            decoded = decode_base64url(payload.body.data)
            if payload.mimeType == "text/html":
                html_body = decoded
            else:
                text_body = decoded
        else:
            found: dict[str, str] = {}
            _collect_bodies(payload.parts, found)
            text_body = found.get("text/plain", "")
            html_body = found.get("text/html", "")
        text_body = text_body.strip() or gmail.snippet
        return text_body, html_body

    async def send(
        self, outbound: OutboundMessage, recipient: str
    ) -> OutboundSendResult:
        """Send through the relay; threads the reply when a target id is set."""
        if outbound.channel != Channel.EMAIL:
            return OutboundSendResult(success=False)

        payload: dict[str, Any] = {
            "to": recipient,
            "cc": list(outbound.cc),
            "subject": outbound.subject or NO_SUBJECT,
            "text": outbound.body,
        }
        if outbound.html_body:
            payload["html"] = outbound.html_body
        if outbound.reply_to_message_id:
            formatted = format_message_id(outbound.reply_to_message_id)
            payload["inReplyTo"] = formatted
            payload["references"] = formatted

        headers = {}
        if self._send_api_key:
            headers["Authorization"] = f"Bearer {self._send_api_key}"
        try:
            if self._client is not None:
                response = await self._client.post(
                    self._send_api_url, json=payload, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        self._send_api_url, json=payload, headers=headers
                    )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Email send to %s failed: %s", recipient, e)
            return OutboundSendResult(success=False)

        return OutboundSendResult(
            success=True,
            platform_message_id=data.get("messageId") or data.get("MessageId"),
            platform_thread_id=data.get("threadId") or data.get("ThreadId"),
            sender_address=data.get("from"),
        )
