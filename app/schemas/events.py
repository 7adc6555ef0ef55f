"""
Canonical pipeline events.

RawEvent is emitted once per stored message; EnrichedEvent adds the NL
description, sentiment and the text to index. Both travel through the queues
as JSON with camelCase keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_message(self) -> dict[str, Any]:
        """JSON-safe dict for the queue transport."""
        return self.model_dump(mode="json", by_alias=True)


class RawEventData(EventModel):
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    subject: Optional[str] = None
    body_text: str = ""
    body_html: str = ""
    text: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Union[list[str], str, None] = None
    headers: dict[str, Any] = Field(default_factory=dict)
    provider: Optional[str] = None
    direction: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class RawEvent(EventModel):
    event_id: str
    timestamp: datetime
    source: str = "inbox-service"
    user_id: str
    event_type: str
    data: RawEventData


class SentimentScores(BaseModel):
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 0.0
    mixed: float = 0.0


class Sentiment(BaseModel):
    sentiment: str
    confidence: float
    scores: SentimentScores


NEUTRAL_SENTIMENT = Sentiment(
    sentiment="NEUTRAL",
    confidence=0.0,
    scores=SentimentScores(positive=0.33, negative=0.33, neutral=0.34, mixed=0.0),
)


class EnrichedEvent(RawEvent):
    processed_at: datetime
    natural_language_description: str
    sentiment: Sentiment
    chunkable_content: str
