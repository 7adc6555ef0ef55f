import pytest

from app.config import Settings
from app.core.app_state import AppState
from app.exceptions import ConfigurationError


def test_require_names_missing_settings():
    settings = Settings(llm_model="", embedding_model="")

    with pytest.raises(ConfigurationError) as exc_info:
        settings.require("llm_model", "embedding_model", "enrichment_queue")

    assert "LLM_MODEL" in str(exc_info.value)
    assert "EMBEDDING_MODEL" in str(exc_info.value)
    assert "ENRICHMENT_QUEUE" not in str(exc_info.value)


def test_broker_url_falls_back_to_redis_host():
    settings = Settings(celery_broker_url=None, redis_host="redis", redis_port=6380)
    assert settings.broker_url == "redis://redis:6380/0"


def test_test_environment_uses_sqlite():
    settings = Settings()
    assert settings.is_test
    assert settings.database_url.startswith("sqlite")


def test_app_state_refuses_missing_configuration():
    with pytest.raises(ConfigurationError):
        AppState.from_settings(Settings(llm_model=""))


def test_app_state_requires_verify_token_when_whatsapp_enabled():
    with pytest.raises(ConfigurationError):
        AppState.from_settings(
            Settings(whatsapp_enabled=True, whatsapp_verify_token=None)
        )
