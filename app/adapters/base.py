"""
Channel adapter interface.

Adapters encapsulate provider-specific logic and expose normalized messages
to the ingestion core. A webhook delivery may carry several records; each is
parsed on its own so one malformed record does not reject the delivery.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from app.exceptions import MalformedPayloadError
from app.schemas.conversa import InboundMessage, OutboundMessage, OutboundSendResult


class BasePlatformAdapter(ABC):
    """Contract for channel adapters. New channels implement this interface."""

    @abstractmethod
    def split_records(self, raw_payload: Any) -> list[Any]:
        """Return the individual message records of a webhook delivery."""
        ...

    @abstractmethod
    def parse_record(self, record: Any) -> InboundMessage:
        """Parse one record into a normalized inbound message. Raise MalformedPayloadError if invalid."""
        ...

    @abstractmethod
    async def send(
        self, outbound: OutboundMessage, recipient: str
    ) -> OutboundSendResult:
        """Send a normalized outbound message. Return success and provider ids."""
        ...

    def parse_webhook(self, raw_payload: Any) -> list[InboundMessage]:
        """Parse every record of a delivery; raises on the first malformed one."""
        return [self.parse_record(record) for record in self.split_records(raw_payload)]

    def verify_webhook(
        self, body: bytes, request_headers: Optional[dict[str, str]] = None
    ) -> bool:
        """
        Verify a webhook request (e.g. signature). Override if the provider supports it.
        Return True if valid or verification not required; False to reject.
        """
        return True


def header_value(headers: Optional[dict[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in (headers or {}).items():
        if key.lower() == wanted:
            return value
    return None


def require_field(value: Any, name: str) -> Any:
    if value in (None, ""):
        raise MalformedPayloadError(f"Missing required field: {name}")
    return value
