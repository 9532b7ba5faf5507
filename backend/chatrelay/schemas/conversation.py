"""Conversation and message schemas returned by the persistence engine and API."""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from chatrelay.models.message import MessageRole
from chatrelay.utils import MAX_TIMESTAMP


class ConversationRead(BaseModel):
    """A conversation without its messages."""

    id: str
    title: str
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    updated_at: int = Field(..., description="Last mutation time, epoch milliseconds")
    message_count: Optional[int] = Field(None, description="Number of messages (list views only)")

    class Config:
        from_attributes = True


class PersistedMessage(BaseModel):
    """A message as stored, with its assigned id and timestamp."""

    id: int
    conversation_id: str
    role: MessageRole
    content: str
    timestamp: int = Field(..., description="Save time, epoch milliseconds")
    provider: Optional[str] = None
    model: Optional[str] = None

    class Config:
        from_attributes = True


class ConversationWithMessages(ConversationRead):
    """A conversation with its messages in chronological order."""

    messages: List[PersistedMessage] = Field(default_factory=list)


class SaveMessageData(BaseModel):
    """Data for appending a message. Role and content are checked by the repository."""

    conversation_id: str
    role: str
    content: str
    provider: Optional[str] = None
    model: Optional[str] = None


def _required_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title is required and must be a non-empty string")
    return v


class CreateConversationRequest(BaseModel):
    """Request to create a conversation."""

    title: str = Field(..., max_length=500, description="Conversation title")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _required_title(v)

    class Config:
        json_schema_extra = {
            "example": {"title": "Trip planning"}
        }


class UpdateConversationTitleRequest(CreateConversationRequest):
    """Request to rename a conversation."""


class SaveMessageRequest(BaseModel):
    """Request to append a message to a conversation."""

    conversation_id: str = Field(..., min_length=1, description="Owning conversation ID")
    role: MessageRole = Field(..., description="user, assistant or system")
    content: str = Field(..., max_length=100000, description="Message body")
    provider: Optional[str] = Field(None, description="Provider that produced the message")
    model: Optional[str] = Field(None, description="Model that produced the message")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Content is required and must be a non-empty string")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "conversation_id": "123e4567-e89b-12d3-a456-426614174000",
                "role": "assistant",
                "content": "Try Japan",
                "provider": "openai",
                "model": "gpt-4o-mini"
            }
        }


class BranchConversationRequest(BaseModel):
    """Request to branch a conversation at a point in time."""

    up_to_timestamp: int = Field(..., le=MAX_TIMESTAMP, description="Inclusive cutoff, epoch milliseconds")
    new_title: str = Field(..., description="Title of the new conversation")

    class Config:
        json_schema_extra = {
            "example": {
                "up_to_timestamp": 1718000000000,
                "new_title": "Trip planning (Branch)"
            }
        }


class ConversationListResponse(BaseModel):
    """Page of conversations."""

    conversations: List[ConversationRead]
    limit: int
    offset: int
    total: int


class MessagesResponse(BaseModel):
    """Messages of a conversation in chronological order."""

    messages: List[PersistedMessage]
    total: int


class SaveMessageResponse(BaseModel):
    status: str = Field(default="success")
    message: PersistedMessage


class CleanupResponse(BaseModel):
    """Result of a retention cleanup run."""

    status: str = Field(default="success")
    deleted_count: int
    retention_days: int
    message: str
