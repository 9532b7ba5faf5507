"""Tests for stored provider API keys."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from structlog.testing import capture_logs

from chatrelay.config import Settings
from chatrelay.errors import LLMProviderError, StorageError
from chatrelay.services.providers import SUPPORTED_PROVIDERS, ProviderService
from chatrelay.services.settings import SettingsService, mask_api_key

ENV_KEY = "sk-env-0123456789abcdef"
STORED_KEY = "sk-ant-REDACTED"
OTHER_KEY = "sk-ant-REDACTED"


def rejected(logs):
    return next(log for log in logs if log["event"] == "api_key_rejected")


@pytest.fixture
def provider_service(settings_repository):
    settings = Settings(
        _env_file=None,
        openai_api_key=ENV_KEY,
        anthropic_api_key="",
        google_generative_ai_api_key="",
        deepseek_api_key="",
        openrouter_api_key="",
        default_provider="openai"
    )
    return ProviderService(settings, settings_repository)


@pytest.fixture
def llm():
    service = MagicMock()
    service.get_completion = AsyncMock(return_value={"content": "ok"})
    return service


@pytest.fixture
def settings_service(settings_repository, provider_service, llm):
    return SettingsService(settings_repository, provider_service, llm)


def test_get_api_key_missing_returns_none(settings_repository):
    assert settings_repository.get_api_key("openai") is None


def test_set_api_key_upserts(settings_repository, clock):
    settings_repository.set_api_key("anthropic", STORED_KEY)
    clock.advance(1000)
    settings_repository.set_api_key("anthropic", OTHER_KEY)

    assert settings_repository.get_api_key("anthropic") == OTHER_KEY


def test_get_all_api_keys_covers_every_provider(settings_repository):
    settings_repository.set_api_key("deepseek", STORED_KEY)

    keys = settings_repository.get_all_api_keys()

    assert list(keys) == SUPPORTED_PROVIDERS
    assert keys["deepseek"] == STORED_KEY
    assert keys["openai"] is None


def test_delete_api_key(settings_repository):
    settings_repository.set_api_key("openai", STORED_KEY)

    settings_repository.delete_api_key("openai")
    settings_repository.delete_api_key("openai")

    assert settings_repository.get_api_key("openai") is None


def test_stored_keys_survive_reopen(settings_repository, database):
    settings_repository.set_api_key("google", STORED_KEY)
    database.close()

    assert settings_repository.get_api_key("google") == STORED_KEY


def test_storage_failure_is_wrapped(settings_repository):
    error = SQLAlchemyError(f"INSERT INTO settings [parameters: ('api_key_openai', '{STORED_KEY}')]")
    with patch.object(Session, "execute", side_effect=error):
        with capture_logs() as logs:
            with pytest.raises(StorageError) as exc_info:
                settings_repository.set_api_key("openai", STORED_KEY)

    failure = next(log for log in logs if log["event"] == "settings_operation_failed")
    assert failure["provider"] == "openai"
    assert STORED_KEY not in str(logs)
    assert STORED_KEY not in exc_info.value.message


@pytest.mark.parametrize("key, masked", [
    ("sk-ant-REDACTED", "sk-ant-***...***ptDw"),
    ("0123456789abcdef", "0123456***...***cdef"),
    ("0123456789abcde", "***"),
    ("short", "***"),
])
def test_mask_api_key(key, masked):
    assert mask_api_key(key) == masked


def test_stored_key_wins_over_environment(settings_repository, provider_service):
    settings_repository.set_api_key("openai", STORED_KEY)
    assert provider_service.get_api_key("openai") == ENV_KEY

    provider_service.reload_api_keys()

    assert provider_service.get_api_key("openai") == STORED_KEY
    assert provider_service.get_api_key_source("openai") == "stored"


def test_key_sources(provider_service):
    assert provider_service.get_api_key_source("openai") == "environment"
    assert provider_service.get_api_key_source("anthropic") is None


def test_stored_keys_loaded_at_startup(settings_repository):
    settings_repository.set_api_key("anthropic", STORED_KEY)

    service = ProviderService(Settings(_env_file=None, anthropic_api_key=""), settings_repository)

    assert "anthropic" in service.get_available_providers()


def test_get_api_keys_status(settings_service):
    keys = settings_service.get_api_keys()

    assert keys["openai"].configured is True
    assert keys["openai"].masked_key == "sk-env-***...***cdef"
    assert keys["openai"].source == "environment"
    assert keys["anthropic"].configured is False
    assert keys["anthropic"].masked_key is None


async def test_set_api_key_verifies_with_test_call(settings_service, llm):
    result = await settings_service.set_api_key("anthropic", STORED_KEY)

    assert result.valid is True
    assert result.message == "Anthropic API key validated successfully"
    llm.get_completion.assert_awaited_once_with(
        [{"role": "user", "content": "test"}], "anthropic", "claude-3-5-haiku-latest"
    )
    llm.clear_clients.assert_called()
    assert "anthropic" in settings_service.provider_service.get_available_providers()


async def test_failed_test_call_keeps_key(settings_service, settings_repository, llm):
    llm.get_completion.side_effect = LLMProviderError("Anthropic", "invalid x-api-key")

    with capture_logs() as logs:
        result = await settings_service.set_api_key("anthropic", STORED_KEY)

    assert result.valid is False
    assert "invalid x-api-key" in result.message
    assert settings_repository.get_api_key("anthropic") == STORED_KEY
    assert any(log["event"] == "api_key_validation_failed" for log in logs)


async def test_bad_format_deletes_new_key(settings_service, settings_repository, llm):
    with capture_logs() as logs:
        result = await settings_service.set_api_key("anthropic", "short")

    assert result.valid is False
    assert settings_repository.get_api_key("anthropic") is None
    assert "anthropic" not in settings_service.provider_service.get_available_providers()
    llm.get_completion.assert_not_awaited()
    assert rejected(logs)["action"] == "deleted_invalid_key"


async def test_bad_format_restores_previous_key(settings_service, settings_repository):
    await settings_service.set_api_key("anthropic", STORED_KEY)

    with capture_logs() as logs:
        result = await settings_service.set_api_key("anthropic", "short")

    assert result.valid is False
    assert settings_repository.get_api_key("anthropic") == STORED_KEY
    assert settings_service.provider_service.get_api_key("anthropic") == STORED_KEY
    assert rejected(logs)["action"] == "restored_previous_key"


async def test_set_api_key_without_verification(settings_repository, provider_service, llm):
    service = SettingsService(settings_repository, provider_service, llm, verify_keys=False)

    result = await service.set_api_key("deepseek", STORED_KEY)

    assert result.valid is True
    llm.get_completion.assert_not_awaited()


def test_delete_api_key_falls_back_to_environment(settings_service, settings_repository, llm):
    settings_repository.set_api_key("openai", STORED_KEY)
    settings_service.provider_service.reload_api_keys()

    settings_service.delete_api_key("openai")

    assert settings_service.provider_service.get_api_key("openai") == ENV_KEY
    llm.clear_clients.assert_called_once()
