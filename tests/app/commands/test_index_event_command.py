from unittest.mock import AsyncMock, MagicMock

import pytest

from app.commands.index_event_command import IndexEventCommand
from app.config import Settings
from app.exceptions import UpstreamUnavailableError
from app.services.vector_index_service import SqlVectorIndex


@pytest.fixture
def settings():
    return Settings(max_chunk_chars=60, chunk_overlap_chars=10, min_chunk_chars=5)


def _embedder(dimensions=3):
    embedder = MagicMock()

    async def embed(texts):
        return [[float(i + 1)] * dimensions for i, _ in enumerate(texts)]

    embedder.embed = AsyncMock(side_effect=embed)
    return embedder


async def test_indexes_chunks_with_deterministic_ids(db, settings, enriched_event):
    index = SqlVectorIndex(db)
    command = IndexEventCommand(_embedder(), index, settings=settings)

    written = await command.execute(enriched_event)

    assert written > 1
    matches = index.query([1.0, 1.0, 1.0], top_k=written)
    ids = sorted(match.id for match in matches)
    assert ids == sorted(f"{enriched_event.event_id}-{i}" for i in range(written))


async def test_chunk_metadata_carries_event_context(db, settings, enriched_event):
    index = SqlVectorIndex(db)
    await IndexEventCommand(_embedder(), index, settings=settings).execute(
        enriched_event
    )

    match = index.query([1.0, 1.0, 1.0], top_k=1)[0]
    metadata = match.metadata
    assert metadata["eventId"] == enriched_event.event_id
    assert metadata["threadId"] == enriched_event.data.thread_id
    assert metadata["eventType"] == "email.received"
    assert metadata["sentiment"] == "NEGATIVE"
    assert metadata["sentimentNegative"] == 0.7
    assert metadata["participants"] == ["client@example.com", "owner@inbox.example.com"]
    assert metadata["naturalLanguageDescription"].startswith("A client urgently")
    assert metadata["chunkCount"] >= 2
    assert metadata["content"]


async def test_reindexing_overwrites_vectors(db, settings, enriched_event):
    index = SqlVectorIndex(db)
    command = IndexEventCommand(_embedder(), index, settings=settings)

    first = await command.execute(enriched_event)
    second = await command.execute(enriched_event)

    assert first == second
    assert len(index.query([1.0, 1.0, 1.0], top_k=100)) == first


async def test_embedding_failure_propagates_without_upsert(settings, enriched_event):
    embedder = MagicMock()
    embedder.embed = AsyncMock(side_effect=UpstreamUnavailableError("embeddings", "down"))
    index = MagicMock()

    with pytest.raises(UpstreamUnavailableError):
        await IndexEventCommand(embedder, index, settings=settings).execute(enriched_event)

    index.upsert.assert_not_called()


async def test_empty_content_is_skipped(settings, enriched_event):
    empty = enriched_event.model_copy(
        update={
            "chunkable_content": "",
            "natural_language_description": "",
            "data": enriched_event.data.model_copy(update={"body_text": ""}),
        }
    )
    embedder = _embedder()
    index = MagicMock()

    written = await IndexEventCommand(embedder, index, settings=settings).execute(empty)

    assert written == 0
    embedder.embed.assert_not_awaited()
    index.upsert.assert_not_called()
