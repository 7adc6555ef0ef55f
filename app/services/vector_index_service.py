"""
Vector index backed by the vector_chunks table.

Upserts replace rows by id. Queries score every candidate row with cosine
similarity in numpy, after an optional equality filter on metadata keys.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sqlalchemy.orm import Session

from app.models.vector_chunk import VectorChunk

logger = logging.getLogger(__name__)


@dataclass
class VectorRecord:
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, Any]


class SqlVectorIndex:
    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert(self, vectors: Sequence[VectorRecord]) -> int:
        """Insert or replace vectors by id. Returns the number written."""
        for vector in vectors:
            self.db.merge(
                VectorChunk(
                    id=vector.id,
                    event_id=vector.metadata.get("eventId"),
                    thread_id=vector.metadata.get("threadId"),
                    embedding=list(vector.values),
                    metadata_=dict(vector.metadata),
                )
            )
        self.db.commit()
        logger.info("Upserted %d vectors", len(vectors))
        return len(vectors)

    def query(
        self,
        embedding: Sequence[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[VectorMatch]:
        query = self.db.query(VectorChunk)
        filter = dict(filter or {})
        # threadId has its own indexed column.
        thread_id = filter.pop("threadId", None)
        if thread_id is not None:
            query = query.filter(VectorChunk.thread_id == thread_id)
        rows = [
            row
            for row in query.all()
            if all((row.metadata_ or {}).get(k) == v for k, v in filter.items())
        ]
        if not rows:
            return []

        target = np.asarray(embedding, dtype=float)
        matrix = np.asarray([row.embedding for row in rows], dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(target)
        norms[norms == 0] = 1.0
        scores = matrix @ target / norms
        order = np.argsort(-scores)[:top_k]
        return [
            VectorMatch(
                id=rows[i].id, score=float(scores[i]), metadata=rows[i].metadata_
            )
            for i in order
        ]

