"""
Process-wide dependencies.

Built once at process start (FastAPI lifespan, Celery worker_process_init)
and handed to commands as constructor arguments.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional

from app.config import Settings, get_settings
from app.db import DatabaseManager, db_manager
from app.services.event_publisher import EventPublisher
from app.workers.embeddings import LiteLLMEmbedder, build_embedder_from_env
from app.workers.llm import (
    DescriptionGenerator,
    SentimentAnalyzer,
    build_llm_workers_from_env,
)

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    "database_url",
    "broker_url",
    "enrichment_queue",
    "indexing_queue",
    "llm_model",
    "embedding_model",
)


class AppState:
    def __init__(
        self,
        settings: Settings,
        database: DatabaseManager,
        publisher: EventPublisher,
        description_generator: DescriptionGenerator,
        sentiment_analyzer: SentimentAnalyzer,
        embedder: LiteLLMEmbedder,
    ) -> None:
        self.settings = settings
        self.database = database
        self.publisher = publisher
        self.description_generator = description_generator
        self.sentiment_analyzer = sentiment_analyzer
        self.embedder = embedder
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, database: Optional[DatabaseManager] = None
    ) -> "AppState":
        """
        Validate configuration and construct every external client.

        Raises:
            ConfigurationError: a required setting is missing.
        """
        settings = settings or get_settings()
        settings.require(*REQUIRED_SETTINGS)
        if settings.whatsapp_enabled:
            settings.require("whatsapp_verify_token")
        description_generator, sentiment_analyzer = build_llm_workers_from_env(settings)
        state = cls(
            settings=settings,
            database=database or db_manager,
            publisher=EventPublisher(
                enrichment_queue=settings.enrichment_queue,
                indexing_queue=settings.indexing_queue,
                source=settings.event_source,
            ),
            description_generator=description_generator,
            sentiment_analyzer=sentiment_analyzer,
            embedder=build_embedder_from_env(settings),
        )
        logger.info("Application state initialised (%s)", settings.environment)
        return state

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run a coroutine on the process event loop.

        The loop outlives single tasks so pooled HTTP clients stay bound to it.
        """
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(coro)

    def close(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
        self.database.dispose()


_state: Optional[AppState] = None


def init_state(settings: Optional[Settings] = None) -> AppState:
    global _state
    if _state is None:
        _state = AppState.from_settings(settings)
    return _state


def get_state() -> AppState:
    if _state is None:
        return init_state()
    return _state


def set_state(state: Optional[AppState]) -> None:
    global _state
    _state = state


def shutdown_state() -> None:
    global _state
    if _state is not None:
        _state.close()
        _state = None
