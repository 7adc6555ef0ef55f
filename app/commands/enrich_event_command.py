"""
Command to enrich a RawEvent with a description and sentiment.

Description and sentiment are computed concurrently, each bounded by a
timeout. Either one falling over yields a deterministic fallback, so an
event is always forwarded to indexing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from app.config import Settings, get_settings
from app.schemas.events import (
    NEUTRAL_SENTIMENT,
    EnrichedEvent,
    RawEvent,
    Sentiment,
)
from app.utils.text import strip_html, truncate_utf8

logger = logging.getLogger(__name__)

FALLBACK_TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"

STATUS_PROCESSED = "processed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


class DescriptionSource(Protocol):
    async def describe(self, event: RawEvent) -> str: ...


class SentimentSource(Protocol):
    async def analyze(self, text: str) -> Sentiment: ...


def fallback_description(event: RawEvent) -> str:
    """Template used when the LLM is unavailable."""
    formatted = event.timestamp.strftime(FALLBACK_TIMESTAMP_FORMAT)
    return f"{event.event_type} event occurred on {formatted}."


def sentiment_text(event: RawEvent, max_bytes: int) -> str:
    """Subject plus the best available body, truncated to max_bytes of UTF-8."""
    data = event.data
    parts = []
    if data.subject:
        parts.append(data.subject)
    if data.body_text:
        parts.append(data.body_text)
    elif data.body_html:
        parts.append(strip_html(data.body_html))
    elif data.text:
        parts.append(data.text)
    return truncate_utf8(" ".join(parts).strip(), max_bytes)


@dataclass
class BatchReport:
    processed: List[str] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class EnrichEventCommand:
    def __init__(
        self,
        description_generator: DescriptionSource,
        sentiment_analyzer: SentimentSource,
        forward: Optional[Callable[[EnrichedEvent], Any]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.description_generator = description_generator
        self.sentiment_analyzer = sentiment_analyzer
        self.forward = forward
        settings = settings or get_settings()
        self.timeout = settings.enrichment_timeout_seconds
        self.max_bytes = settings.sentiment_max_bytes

    async def execute(self, raw: RawEvent) -> EnrichedEvent:
        """Enrich one event and forward it. Forwarding errors propagate."""
        description, sentiment = await asyncio.gather(
            self._describe(raw), self._sentiment(raw)
        )
        enriched = EnrichedEvent(
            **raw.model_dump(),
            processed_at=datetime.now(timezone.utc),
            natural_language_description=description,
            sentiment=sentiment,
            chunkable_content=f"{description}\n\n{raw.data.body_text}".strip(),
        )
        if self.forward is not None:
            self.forward(enriched)
        return enriched

    async def execute_batch(self, records: Iterable[Any]) -> BatchReport:
        """
        Enrich records independently. Malformed records are skipped, records
        whose forwarding failed are reported as failed for redelivery.
        """
        report = BatchReport()
        for index, record in enumerate(records):
            try:
                raw = RawEvent.model_validate(record)
            except ValidationError as e:
                logger.warning("Skipping malformed event record %d: %s", index, e)
                report.skipped.append(index)
                continue
            try:
                await self.execute(raw)
            except Exception:
                logger.exception("Failed to enrich event %s", raw.event_id)
                report.failed.append(raw.event_id)
                continue
            report.processed.append(raw.event_id)
        return report

    async def _describe(self, raw: RawEvent) -> str:
        return await self._bounded(
            lambda: self.description_generator.describe(raw),
            fallback=lambda: fallback_description(raw),
            what="description",
            event_id=raw.event_id,
        )

    async def _sentiment(self, raw: RawEvent) -> Sentiment:
        text = sentiment_text(raw, self.max_bytes)
        if not text:
            return NEUTRAL_SENTIMENT.model_copy(deep=True)
        return await self._bounded(
            lambda: self.sentiment_analyzer.analyze(text),
            fallback=lambda: NEUTRAL_SENTIMENT.model_copy(deep=True),
            what="sentiment",
            event_id=raw.event_id,
        )

    async def _bounded(
        self,
        call: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Any],
        what: str,
        event_id: str,
    ) -> Any:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out for event %s; using fallback", what, event_id)
        except Exception as e:
            logger.warning(
                "%s failed for event %s: %s; using fallback", what, event_id, e
            )
        return fallback()
