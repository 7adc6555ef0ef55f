"""
Command to chunk, embed and index an EnrichedEvent.

Vector ids are "{event_id}-{chunk_index}", so a redelivered event overwrites
its own vectors. Embedding and upsert failures propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from app.config import Settings, get_settings
from app.core.chunking import TextChunk, prepare_chunks
from app.schemas.events import EnrichedEvent
from app.services.vector_index_service import VectorRecord

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, texts: Sequence[str]) -> List[List[float]]: ...


class VectorIndex(Protocol):
    def upsert(self, vectors: Sequence[VectorRecord]) -> int: ...


def _participants(event: EnrichedEvent) -> List[str]:
    to = event.data.to
    recipients = to if isinstance(to, list) else [to]
    return [p for p in [event.data.from_, *recipients] if p]


def chunk_metadata(
    event: EnrichedEvent, chunk: TextChunk, index: int, count: int
) -> Dict[str, Any]:
    data = event.data
    sentiment = event.sentiment
    headers = data.headers or {}
    return {
        "threadId": data.thread_id or "",
        "eventId": event.event_id,
        "eventType": event.event_type,
        "timestamp": event.timestamp.isoformat(),
        "userId": event.user_id,
        "messageId": data.message_id or "",
        "subject": data.subject or "",
        "content": chunk.text,
        "naturalLanguageDescription": event.natural_language_description,
        "direction": data.direction or "",
        "participants": _participants(event),
        "inReplyTo": headers.get("In-Reply-To", ""),
        "references": headers.get("References", ""),
        "sentiment": sentiment.sentiment,
        "sentimentConfidence": sentiment.confidence,
        "sentimentPositive": sentiment.scores.positive,
        "sentimentNegative": sentiment.scores.negative,
        "sentimentNeutral": sentiment.scores.neutral,
        "sentimentMixed": sentiment.scores.mixed,
        "chunkIndex": index,
        "chunkCount": count,
        "chunkStart": chunk.start,
        "chunkEnd": chunk.end,
    }


class IndexEventCommand:
    def __init__(
        self,
        embedder: Embedder,
        vector_index: VectorIndex,
        settings: Optional[Settings] = None,
    ) -> None:
        self.embedder = embedder
        self.vector_index = vector_index
        settings = settings or get_settings()
        self.max_chars = settings.max_chunk_chars
        self.overlap = settings.chunk_overlap_chars
        self.min_chars = settings.min_chunk_chars

    async def execute(self, event: EnrichedEvent) -> int:
        """Index one event. Returns the number of vectors written."""
        text = event.chunkable_content or (
            f"{event.natural_language_description}\n\n{event.data.body_text}".strip()
        )
        chunks = prepare_chunks(
            text,
            max_chars=self.max_chars,
            overlap=self.overlap,
            min_chars=self.min_chars,
        )
        if not chunks:
            logger.warning("No text to embed for event %s; skipping", event.event_id)
            return 0

        embeddings = await self.embedder.embed([chunk.text for chunk in chunks])
        vectors = [
            VectorRecord(
                id=f"{event.event_id}-{index}",
                values=embedding,
                metadata=chunk_metadata(event, chunk, index, len(chunks)),
            )
            for index, (chunk, embedding) in enumerate(zip(chunks, embeddings))
        ]
        written = self.vector_index.upsert(vectors)
        logger.info("Indexed %d chunks for event %s", written, event.event_id)
        return written
