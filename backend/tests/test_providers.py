"""Tests for the provider catalog and selection."""
import pytest
from structlog.testing import capture_logs

from chatrelay.config import Settings
from chatrelay.errors import ErrorCode, ProviderUnavailableError, UnsupportedModelError
from chatrelay.services.providers import PROVIDER_METADATA, SUPPORTED_PROVIDERS, ProviderService

VALID_KEY = "sk-test-0123456789abcdef"


def make_settings(**overrides):
    """Settings with every provider key unset unless overridden."""
    values = {
        "openai_api_key": "",
        "anthropic_api_key": "",
        "google_generative_ai_api_key": "",
        "deepseek_api_key": "",
        "openrouter_api_key": "",
        "default_provider": "openai",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_catalog_defaults_are_listed_models():
    for provider in SUPPORTED_PROVIDERS:
        config = PROVIDER_METADATA[provider]
        assert config.default_model in config.models


def test_available_providers_follow_catalog_order():
    service = ProviderService(make_settings(deepseek_api_key=VALID_KEY, openai_api_key=VALID_KEY))

    assert service.get_available_providers() == ["openai", "deepseek"]


def test_short_key_is_not_configured():
    """Test that placeholder keys shorter than the minimum are ignored."""
    service = ProviderService(make_settings(openai_api_key="sk-123"))

    validation = service.validate_api_key("openai")

    assert validation.valid is False
    assert "not configured" in validation.message
    assert service.get_available_providers() == []


def test_validate_unknown_provider():
    service = ProviderService(make_settings())

    assert service.validate_api_key("acme").valid is False


def test_validate_all_providers_covers_catalog():
    service = ProviderService(make_settings(google_generative_ai_api_key=VALID_KEY))

    validations = service.validate_all_providers()

    assert set(validations) == set(SUPPORTED_PROVIDERS)
    assert validations["google"].valid is True
    assert validations["openai"].valid is False


def test_resolve_uses_default_provider_and_model():
    service = ProviderService(make_settings(openai_api_key=VALID_KEY, anthropic_api_key=VALID_KEY))

    assert service.resolve() == ("openai", "gpt-4o-mini")


def test_resolve_falls_back_to_first_available():
    """Test that an unconfigured default gives way to the first keyed provider."""
    service = ProviderService(make_settings(anthropic_api_key=VALID_KEY, default_provider="openai"))

    assert service.get_default_provider() == "anthropic"
    assert service.resolve() == ("anthropic", "claude-3-5-haiku-latest")


def test_resolve_explicit_model():
    service = ProviderService(make_settings(deepseek_api_key=VALID_KEY))

    assert service.resolve("deepseek", "deepseek-reasoner") == ("deepseek", "deepseek-reasoner")


@pytest.mark.parametrize("provider", ["acme", "anthropic"])
def test_resolve_unavailable_provider(provider):
    """Test unknown providers and providers without a key."""
    service = ProviderService(make_settings(openai_api_key=VALID_KEY))

    with pytest.raises(ProviderUnavailableError) as exc_info:
        service.resolve(provider)

    assert exc_info.value.error_code == ErrorCode.PROVIDER_UNAVAILABLE
    assert exc_info.value.details["available"] == ["openai"]


def test_resolve_with_no_providers():
    service = ProviderService(make_settings())

    assert service.get_default_provider() is None
    with pytest.raises(ProviderUnavailableError):
        service.resolve()


def test_resolve_unsupported_model():
    service = ProviderService(make_settings(openai_api_key=VALID_KEY))

    with pytest.raises(UnsupportedModelError) as exc_info:
        service.resolve("openai", "gpt-2")

    assert exc_info.value.error_code == ErrorCode.UNSUPPORTED_MODEL
    assert "gpt-4o-mini" in exc_info.value.message


def test_experimental_model_logs_warning():
    service = ProviderService(make_settings(google_generative_ai_api_key=VALID_KEY))

    with capture_logs() as logs:
        service.resolve("google", "gemini-2.0-flash-exp")

    assert any(e["event"] == "experimental_model_selected" for e in logs)


def test_provider_info_lists_only_available():
    service = ProviderService(make_settings(openrouter_api_key=VALID_KEY))

    info = service.get_provider_info()

    assert [p.id for p in info] == ["openrouter"]
    assert info[0].name == "OpenRouter"
    assert info[0].default_model == "openai/gpt-4o-mini"
