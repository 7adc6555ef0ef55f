"""
Error taxonomy for the ingestion and enrichment pipeline.

Duplicates are expected outcomes and are resolved by the caller; access
errors are surfaced to API clients; upstream and payload errors are handled
per record so one bad record never aborts a batch.
"""

from __future__ import annotations

from typing import Any, Optional


class InboxError(Exception):
    """Base class for pipeline errors."""


class DuplicateMessageError(InboxError):
    """An incoming message with the same provider id is already stored in the thread."""

    def __init__(self, thread_id: str, provider_message_id: str, existing: Any = None):
        super().__init__(
            f"Message {provider_message_id} already stored in thread {thread_id}"
        )
        self.thread_id = thread_id
        self.provider_message_id = provider_message_id
        self.existing = existing


class ThreadAccessDeniedError(InboxError):
    """The caller is neither owner nor participant of the thread."""

    def __init__(self, user_id: str, thread_id: str):
        super().__init__(f"User {user_id} has no access to thread {thread_id}")
        self.user_id = user_id
        self.thread_id = thread_id


class ThreadNotFoundError(InboxError):
    """No thread with the given id exists."""


class UpstreamUnavailableError(InboxError):
    """An external provider (LLM, sentiment, embeddings, send API) failed or timed out."""

    def __init__(self, service: str, reason: Optional[str] = None):
        message = f"{service} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.service = service


class MalformedPayloadError(InboxError):
    """A provider payload or queue record could not be parsed."""


class ConfigurationError(InboxError):
    """Required configuration is missing; the component refuses to start."""
