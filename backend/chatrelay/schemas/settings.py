"""Runtime settings schemas."""
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional

from chatrelay.services.providers import SUPPORTED_PROVIDERS


class ApiKeyStatus(BaseModel):
    """Whether a provider has a key, without revealing it."""

    configured: bool
    masked_key: Optional[str] = None
    source: Optional[Literal["stored", "environment"]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "configured": True,
                "masked_key": "sk-ant-***...***ptDw",
                "source": "stored"
            }
        }


class SetApiKeyRequest(BaseModel):
    """Store an API key for one provider."""

    provider: str = Field(..., description="Provider ID")
    key: str = Field(..., min_length=1, max_length=500)

    @field_validator("provider")
    @classmethod
    def provider_must_be_supported(cls, v: str) -> str:
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Invalid provider. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}")
        return v

    @field_validator("key")
    @classmethod
    def key_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("API key cannot be empty")
        return v


class DeleteApiKeyResponse(BaseModel):
    success: bool = True
