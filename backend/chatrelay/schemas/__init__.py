"""Pydantic schemas for request/response validation."""
from chatrelay.schemas.chat import ChatMessage, ChatRequest, ChatResponse
from chatrelay.schemas.conversation import (
    ConversationRead,
    ConversationWithMessages,
    PersistedMessage,
    SaveMessageData,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ConversationRead",
    "ConversationWithMessages",
    "PersistedMessage",
    "SaveMessageData",
]
