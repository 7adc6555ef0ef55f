"""VectorChunk model: embedded slices of enriched events for semantic search."""

from __future__ import annotations

from sqlalchemy import Column, String

from app.db import Base
from app.models.mixins import JSONType, TimestampMixin


class VectorChunk(Base, TimestampMixin):
    """
    One embedding per chunk. id is "{event_id}-{chunk_index}", so re-indexing
    the same event replaces rows instead of adding new ones.
    """

    __tablename__ = "vector_chunks"

    id = Column(String(160), primary_key=True)
    event_id = Column(String(64), nullable=False, index=True)
    thread_id = Column(String(320), nullable=True, index=True)
    embedding = Column(JSONType, nullable=False)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
