"""Batched text embeddings through LiteLLM."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import litellm

from app.config import Settings, get_settings
from app.exceptions import UpstreamUnavailableError
from app.infra.logging_config import get_logger

logger = get_logger("workers.embeddings")


def _item_field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item[name]
    return getattr(item, name)


class LiteLLMEmbedder:
    def __init__(
        self,
        model: str,
        batch_size: int = 10,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.model = model
        self.batch_size = batch_size
        self._api_key = api_key
        self._api_base = api_base
        self._timeout = timeout

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in batches. The result is positional: the i-th vector
        belongs to the i-th input.
        """
        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            vectors.extend(await self._embed_batch(batch))
        return vectors

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        try:
            response = await litellm.aembedding(
                model=self.model,
                input=batch,
                api_key=self._api_key,
                api_base=self._api_base,
                timeout=self._timeout,
            )
        except Exception as e:
            raise UpstreamUnavailableError("embeddings", str(e)) from e

        data = sorted(response.data, key=lambda item: _item_field(item, "index"))
        if len(data) != len(batch):
            raise UpstreamUnavailableError(
                "embeddings",
                f"expected {len(batch)} vectors, got {len(data)}",
            )
        logger.debug("Embedded batch of %d texts with %s", len(batch), self.model)
        return [list(_item_field(item, "embedding")) for item in data]


def build_embedder_from_env(settings: Optional[Settings] = None) -> LiteLLMEmbedder:
    settings = settings or get_settings()
    return LiteLLMEmbedder(
        model=settings.embedding_model,
        batch_size=settings.embedding_batch_size,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
        timeout=settings.embedding_timeout_seconds,
    )
