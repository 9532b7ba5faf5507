"""Chat request/response schemas."""
from pydantic import BaseModel, Field
from typing import List, Optional

from chatrelay.models.message import MessageRole


class ChatMessage(BaseModel):
    """One message of the conversation sent to the provider."""

    role: MessageRole
    content: str = Field(..., min_length=1, max_length=100000)


class ChatRequest(BaseModel):
    """Request to send a chat to a provider."""

    messages: List[ChatMessage] = Field(..., min_length=1, description="Full conversation, oldest first")
    provider: Optional[str] = Field(None, description="Provider ID (defaults to first available)")
    model: Optional[str] = Field(None, description="Model name (defaults to the provider's default)")
    conversation_id: Optional[str] = Field(None, description="Persist the exchange to this conversation (optional)")

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [{"role": "user", "content": "Where should I go?"}],
                "provider": "openai",
                "model": "gpt-4o-mini",
                "conversation_id": "123e4567-e89b-12d3-a456-426614174000"
            }
        }


class ChatResponse(BaseModel):
    """Response from chat endpoint (for non-streaming)."""

    response: str
    timestamp: str
    provider: str
    provider_name: str
    model: str
    conversation_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "response": "Try Japan",
                "timestamp": "2024-06-10T12:00:00+00:00",
                "provider": "openai",
                "provider_name": "OpenAI",
                "model": "gpt-4o-mini",
                "conversation_id": "123e4567-e89b-12d3-a456-426614174000"
            }
        }
