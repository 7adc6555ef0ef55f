from __future__ import annotations

import json
from typing import Any, Optional

from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from app.config import Settings, get_settings
from app.exceptions import UpstreamUnavailableError
from app.infra.logging_config import get_logger
from app.schemas.events import RawEvent, Sentiment, SentimentScores

logger = get_logger("workers.llm")

DESCRIPTION_SYSTEM_PROMPT = (
    "You are an expert at analyzing events and creating concise, descriptive "
    "summaries optimized for semantic search and context retrieval. Include "
    "emotional tone, urgency, and sentiment naturally in your descriptions when "
    "relevant. Always respond with exactly one descriptive sentence that captures "
    "both the action and emotional context."
)

DESCRIPTION_PROMPT_TEMPLATE = """Analyze this event and provide a concise, prescriptive one-sentence description that would be useful for semantic search and context retrieval. Include tone, emotion, and urgency naturally in the description when relevant:

Event JSON:
{event_json}

Provide only the one-sentence description with embedded emotional context, no additional text:"""

SENTIMENT_SYSTEM_PROMPT = (
    "You classify the sentiment of a message. Return a probability for each of "
    "positive, negative, neutral and mixed. The four values must sum to 1."
)


def _build_model(
    model_name: str, api_key: Optional[str], api_base: Optional[str]
) -> OpenAIChatModel:
    provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
    return OpenAIChatModel(model_name, provider=provider)


class DescriptionGenerator:
    """One-sentence natural-language description of an event."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        logger.info(f"Initializing description generator with model {model_name}")
        self._agent = Agent(
            _build_model(model_name, api_key, api_base),
            system_prompt=DESCRIPTION_SYSTEM_PROMPT,
            model_settings={"max_tokens": 150, "temperature": 0.3},
        )

    async def describe(self, event: RawEvent) -> str:
        event_json = json.dumps(event.to_message(), indent=2)
        try:
            result = await self._agent.run(
                DESCRIPTION_PROMPT_TEMPLATE.format(event_json=event_json)
            )
        except Exception as e:
            raise UpstreamUnavailableError("llm", str(e)) from e
        description = str(result.output).strip()
        if not description:
            raise UpstreamUnavailableError("llm", "empty description")
        return description


class SentimentAnalyzer:
    """Sentiment label and per-class scores via structured LLM output."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        logger.info(f"Initializing sentiment analyzer with model {model_name}")
        self._agent = Agent(
            _build_model(model_name, api_key, api_base),
            output_type=SentimentScores,
            system_prompt=SENTIMENT_SYSTEM_PROMPT,
            model_settings={"temperature": 0.0},
        )

    async def analyze(self, text: str) -> Sentiment:
        try:
            result = await self._agent.run(text)
        except Exception as e:
            raise UpstreamUnavailableError("sentiment", str(e)) from e
        return sentiment_from_scores(result.output)


def sentiment_from_scores(scores: SentimentScores) -> Sentiment:
    """Label is the highest scoring class, confidence its score."""
    values: dict[str, Any] = scores.model_dump()
    label = max(values, key=values.get)
    return Sentiment(
        sentiment=label.upper(), confidence=float(values[label]), scores=scores
    )


def build_llm_workers_from_env(
    settings: Optional[Settings] = None,
) -> tuple[DescriptionGenerator, SentimentAnalyzer]:
    settings = settings or get_settings()
    logger.info(
        "LLM config: model=%s, sentiment_model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        settings.sentiment_model or settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; enrichment will fall back to templates on auth errors."
        )
    description = DescriptionGenerator(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
    sentiment = SentimentAnalyzer(
        model_name=settings.sentiment_model or settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
    return description, sentiment
