"""
Reply target resolution for outbound messages.

Providers populate threading headers inconsistently depending on how a
message entered the system (webhook vs. manual relay), so the target is
chosen by an ordered list of strategies, first non-None wins:

1. the most recent inbound message carrying a provider identifier,
2. the oldest inbound message, accepting the internal id as a last resort,
3. nothing: the caller sends a fresh message.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from app.models.message import Message
from app.services.message_service import MessageService

logger = logging.getLogger(__name__)

RECENT_INBOUND_WINDOW = 5

IdentifierExtractor = Callable[[Message], Optional[str]]
ReplyStrategy = Callable[[str], Optional[str]]


def header_message_id(message: Message) -> Optional[str]:
    """Original provider Message-ID header."""
    headers = message.headers or {}
    for key, value in headers.items():
        if key.lower() == "message-id" and value:
            return str(value)
    return None


def send_result_message_id(message: Message) -> Optional[str]:
    """Provider-assigned id recorded from a send result."""
    result = message.send_result or {}
    value = result.get("MessageId") or result.get("messageId")
    return str(value) if value else None


def internal_message_id(message: Message) -> Optional[str]:
    """Internally generated id; does not thread with the external provider."""
    return message.id or None


PROVIDER_IDENTIFIERS: List[IdentifierExtractor] = [
    header_message_id,
    send_result_message_id,
]
ALL_IDENTIFIERS: List[IdentifierExtractor] = PROVIDER_IDENTIFIERS + [
    internal_message_id
]


def is_threadable(message: Message, identifier: str) -> bool:
    """Email replies need an RFC 5322 style Message-ID; other channels take any id."""
    if message.channel == "email":
        return "@" in identifier or "<" in identifier
    return True


def first_identifier(
    message: Message,
    extractors: Sequence[IdentifierExtractor],
    validate: bool = False,
) -> Optional[str]:
    for extract in extractors:
        identifier = extract(message)
        if not identifier:
            continue
        if validate and not is_threadable(message, identifier):
            continue
        return identifier
    return None


class ReplyResolver:
    """Find the provider message id an outbound reply should thread against."""

    def __init__(self, message_service: MessageService) -> None:
        self._messages = message_service
        self.strategies: List[ReplyStrategy] = [
            self.latest_inbound_with_provider_id,
            self.oldest_inbound_with_any_id,
        ]

    def find_reply_target(self, thread_id: str) -> Optional[str]:
        for strategy in self.strategies:
            target = strategy(thread_id)
            if target:
                logger.info(
                    "Reply target for thread %s via %s: %s",
                    thread_id,
                    strategy.__name__,
                    target,
                )
                return target
        logger.info("No reply target for thread %s; sending a new message", thread_id)
        return None

    def latest_inbound_with_provider_id(self, thread_id: str) -> Optional[str]:
        for message in self._messages.latest_inbound(
            thread_id, limit=RECENT_INBOUND_WINDOW
        ):
            identifier = first_identifier(message, PROVIDER_IDENTIFIERS, validate=True)
            if identifier:
                return identifier
        return None

    def oldest_inbound_with_any_id(self, thread_id: str) -> Optional[str]:
        message = self._messages.oldest_inbound(thread_id)
        if message is None:
            return None
        return first_identifier(message, ALL_IDENTIFIERS)
