"""Runtime settings endpoints: provider API keys."""
from typing import Dict

from fastapi import APIRouter, Depends

from chatrelay.api.dependencies import get_settings_service
from chatrelay.errors import ProviderUnavailableError
from chatrelay.schemas.settings import ApiKeyStatus, DeleteApiKeyResponse, SetApiKeyRequest
from chatrelay.services.providers import SUPPORTED_PROVIDERS, ApiKeyValidation
from chatrelay.services.settings import SettingsService

router = APIRouter(prefix="/settings")


@router.get("/api-keys", response_model=Dict[str, ApiKeyStatus])
async def get_api_keys(service: SettingsService = Depends(get_settings_service)):
    """Masked key status for every supported provider."""
    return service.get_api_keys()


@router.put("/api-keys", response_model=ApiKeyValidation)
async def set_api_key(
    body: SetApiKeyRequest,
    service: SettingsService = Depends(get_settings_service)
):
    return await service.set_api_key(body.provider, body.key)


@router.delete("/api-keys/{provider}", response_model=DeleteApiKeyResponse)
async def delete_api_key(
    provider: str,
    service: SettingsService = Depends(get_settings_service)
):
    if provider not in SUPPORTED_PROVIDERS:
        raise ProviderUnavailableError(provider, SUPPORTED_PROVIDERS)
    service.delete_api_key(provider)
    return DeleteApiKeyResponse()
