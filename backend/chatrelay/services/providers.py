"""Provider catalog and API key checks.

Every provider is reached through an OpenAI-compatible chat completions
endpoint, so the catalog only needs a base URL, the setting holding the key
and the models we allow.
"""
from typing import TYPE_CHECKING, Dict, List, Optional

import structlog
from pydantic import BaseModel

from chatrelay.config import Settings
from chatrelay.errors import ProviderUnavailableError, UnsupportedModelError

if TYPE_CHECKING:
    from chatrelay.repositories.settings_repository import SettingsRepository

logger = structlog.get_logger()


class ProviderConfig(BaseModel):
    name: str
    api_key_setting: str  # attribute on Settings, also the env var name
    base_url: Optional[str] = None  # None = OpenAI default
    models: List[str]
    default_model: str


class ApiKeyValidation(BaseModel):
    valid: bool
    message: str


class ProviderInfo(BaseModel):
    id: str
    name: str
    models: List[str]
    default_model: str


PROVIDER_METADATA: Dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        name="OpenAI",
        api_key_setting="openai_api_key",
        models=["gpt-4o-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini", "o3-mini"],
        default_model="gpt-4o-mini",
    ),
    "anthropic": ProviderConfig(
        name="Anthropic",
        api_key_setting="anthropic_api_key",
        base_url="https://api.anthropic.com/v1/",
        models=["claude-3-5-haiku-latest", "claude-3-7-sonnet-latest", "claude-sonnet-4-0", "claude-opus-4-0"],
        default_model="claude-3-5-haiku-latest",
    ),
    "google": ProviderConfig(
        name="Google",
        api_key_setting="google_generative_ai_api_key",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        models=["gemini-2.0-flash", "gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash-exp"],
        default_model="gemini-2.0-flash",
    ),
    "deepseek": ProviderConfig(
        name="DeepSeek",
        api_key_setting="deepseek_api_key",
        base_url="https://api.deepseek.com",
        models=["deepseek-chat", "deepseek-reasoner"],
        default_model="deepseek-chat",
    ),
    "openrouter": ProviderConfig(
        name="OpenRouter",
        api_key_setting="openrouter_api_key",
        base_url="https://openrouter.ai/api/v1",
        models=[
            "openai/gpt-4o-mini",
            "anthropic/claude-3.5-sonnet",
            "meta-llama/llama-3.1-70b-instruct",
            "google/gemini-2.0-flash-exp:free",
        ],
        default_model="openai/gpt-4o-mini",
    ),
}

SUPPORTED_PROVIDERS = list(PROVIDER_METADATA)

# Keys shorter than this are treated as unset placeholders
MIN_API_KEY_LENGTH = 10


class ProviderService:
    """
    Which providers are usable and which model a request resolves to.

    A key stored through the settings API wins over the environment key for
    the same provider. Stored keys are cached; call reload_api_keys() after
    changing them.
    """

    def __init__(self, settings: Settings, settings_repository: Optional["SettingsRepository"] = None):
        self.settings = settings
        self.settings_repository = settings_repository
        self._stored_keys: Dict[str, str] = {}
        self.reload_api_keys()

    def reload_api_keys(self) -> None:
        if self.settings_repository is None:
            return
        self._stored_keys = {
            provider: key
            for provider, key in self.settings_repository.get_all_api_keys().items()
            if key
        }

    def get_config(self, provider: str) -> ProviderConfig:
        config = PROVIDER_METADATA.get(provider)
        if config is None:
            raise ProviderUnavailableError(provider, self.get_available_providers())
        return config

    def get_api_key(self, provider: str) -> str:
        stored = self._stored_keys.get(provider)
        if stored:
            return stored
        return getattr(self.settings, self.get_config(provider).api_key_setting, "") or ""

    def get_api_key_source(self, provider: str) -> Optional[str]:
        """Where the effective key comes from: "stored", "environment" or None if unset."""
        if self._stored_keys.get(provider):
            return "stored"
        if getattr(self.settings, self.get_config(provider).api_key_setting, ""):
            return "environment"
        return None

    def validate_api_key(self, provider: str) -> ApiKeyValidation:
        config = PROVIDER_METADATA.get(provider)
        if config is None:
            return ApiKeyValidation(valid=False, message=f"Unknown provider: {provider}")

        api_key = self.get_api_key(provider)
        if len(api_key.strip()) < MIN_API_KEY_LENGTH:
            return ApiKeyValidation(valid=False, message=f"{config.name} API key not configured")

        return ApiKeyValidation(valid=True, message=f"{config.name} API key configured")

    def validate_all_providers(self) -> Dict[str, ApiKeyValidation]:
        return {provider: self.validate_api_key(provider) for provider in SUPPORTED_PROVIDERS}

    def get_available_providers(self) -> List[str]:
        """Providers with a usable API key, in catalog order."""
        return [
            provider for provider, validation in self.validate_all_providers().items()
            if validation.valid
        ]

    def get_default_provider(self) -> Optional[str]:
        """Configured default when usable, otherwise the first available provider."""
        available = self.get_available_providers()
        if self.settings.default_provider in available:
            return self.settings.default_provider
        return available[0] if available else None

    def get_provider_info(self) -> List[ProviderInfo]:
        return [
            ProviderInfo(
                id=provider,
                name=PROVIDER_METADATA[provider].name,
                models=PROVIDER_METADATA[provider].models,
                default_model=PROVIDER_METADATA[provider].default_model,
            )
            for provider in self.get_available_providers()
        ]

    def resolve(self, provider: Optional[str] = None, model: Optional[str] = None) -> tuple:
        """
        Pick the provider and model a chat request will use.

        Returns:
            Tuple of (provider: str, model: str)

        Raises:
            ProviderUnavailableError: Unknown provider or no API key for it
            UnsupportedModelError: Model not in the provider's catalog
        """
        available = self.get_available_providers()
        selected = provider or self.get_default_provider()
        if not selected or selected not in available:
            raise ProviderUnavailableError(selected or "", available)

        config = PROVIDER_METADATA[selected]
        selected_model = model or config.default_model
        if selected_model not in config.models:
            raise UnsupportedModelError(config.name, selected_model, config.models)

        if any(marker in selected_model for marker in ("-preview-", "-exp", "-experimental")):
            logger.warning(
                "experimental_model_selected",
                provider=selected,
                model=selected_model
            )

        return selected, selected_model
