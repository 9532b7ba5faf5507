"""Runtime management of provider API keys."""
from typing import Dict

import structlog

from chatrelay.errors import LLMProviderError
from chatrelay.repositories.settings_repository import SettingsRepository
from chatrelay.schemas.settings import ApiKeyStatus
from chatrelay.services.llm import LLMService
from chatrelay.services.providers import (
    PROVIDER_METADATA,
    SUPPORTED_PROVIDERS,
    ApiKeyValidation,
    ProviderService,
)

logger = structlog.get_logger()


def mask_api_key(key: str) -> str:
    """First 7 and last 4 characters, e.g. "sk-ant-***...***ptDw"."""
    if len(key) < 16:
        return "***"
    return f"{key[:7]}***...***{key[-4:]}"


class SettingsService:
    """Store, report and remove provider API keys without restarting the app."""

    def __init__(
        self,
        settings_repository: SettingsRepository,
        provider_service: ProviderService,
        llm: LLMService,
        verify_keys: bool = True
    ):
        self.settings_repository = settings_repository
        self.provider_service = provider_service
        self.llm = llm
        self.verify_keys = verify_keys

    def get_api_keys(self) -> Dict[str, ApiKeyStatus]:
        """Masked status of the key each provider would use right now."""
        result = {}
        for provider in SUPPORTED_PROVIDERS:
            key = self.provider_service.get_api_key(provider)
            if not key:
                result[provider] = ApiKeyStatus(configured=False)
                continue
            result[provider] = ApiKeyStatus(
                configured=True,
                masked_key=mask_api_key(key),
                source=self.provider_service.get_api_key_source(provider)
            )
        return result

    async def set_api_key(self, provider: str, key: str) -> ApiKeyValidation:
        """
        Store a key, then check it.

        A key failing the format check is rolled back, restoring whatever was
        stored before. A key that passes the format check stays stored even
        if the test call to the provider fails; the result reports the failure.
        """
        original_key = self.settings_repository.get_api_key(provider)
        self.settings_repository.set_api_key(provider, key)
        self._reload()

        format_validation = self.provider_service.validate_api_key(provider)
        if not format_validation.valid:
            logger.warning(
                "api_key_rejected",
                provider=provider,
                reason=format_validation.message,
                action="restored_previous_key" if original_key else "deleted_invalid_key"
            )
            if original_key:
                self.settings_repository.set_api_key(provider, original_key)
            else:
                self.settings_repository.delete_api_key(provider)
            self._reload()
            return format_validation

        logger.info("api_key_saved", provider=provider)
        if not self.verify_keys:
            return format_validation
        return await self._test_api_call(provider)

    def delete_api_key(self, provider: str) -> None:
        """Remove the stored key; an environment key for the provider applies again."""
        self.settings_repository.delete_api_key(provider)
        self._reload()
        logger.info("api_key_deleted", provider=provider)

    def _reload(self) -> None:
        self.provider_service.reload_api_keys()
        # Cached clients still hold the previous key
        self.llm.clear_clients()

    async def _test_api_call(self, provider: str) -> ApiKeyValidation:
        config = PROVIDER_METADATA[provider]
        try:
            await self.llm.get_completion(
                [{"role": "user", "content": "test"}],
                provider,
                config.default_model
            )
        except LLMProviderError as e:
            logger.error(
                "api_key_validation_failed",
                provider=provider,
                model=config.default_model,
                error=e.message
            )
            return ApiKeyValidation(valid=False, message=f"API key validation failed: {e.message}")

        return ApiKeyValidation(valid=True, message=f"{config.name} API key validated successfully")
