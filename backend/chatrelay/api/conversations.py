"""Conversation history endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from chatrelay.api.dependencies import get_app_settings, get_conversation_service
from chatrelay.config import Settings
from chatrelay.errors import ConversationNotFoundError
from chatrelay.middleware.logging import get_logger
from chatrelay.schemas.conversation import (
    BranchConversationRequest,
    CleanupResponse,
    ConversationListResponse,
    ConversationRead,
    ConversationWithMessages,
    CreateConversationRequest,
    MessagesResponse,
    SaveMessageData,
    SaveMessageRequest,
    SaveMessageResponse,
    UpdateConversationTitleRequest,
)
from chatrelay.services.conversations import ConversationService

router = APIRouter(prefix="/conversations")
logger = get_logger()


@router.post("", response_model=ConversationRead, status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    conversation = await service.create_conversation(body.title)
    logger.info("conversation_created", conversation_id=conversation.id)
    return conversation


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ConversationService = Depends(get_conversation_service)
):
    """List conversations, most recently updated first."""
    conversations = await service.list_conversations(limit, offset)
    total = await service.get_conversation_count()
    return ConversationListResponse(
        conversations=conversations,
        limit=limit,
        offset=offset,
        total=total
    )


@router.post("/messages", response_model=SaveMessageResponse, status_code=201)
async def save_message(
    body: SaveMessageRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    message = await service.save_message(SaveMessageData(
        conversation_id=body.conversation_id,
        role=body.role.value,
        content=body.content,
        provider=body.provider,
        model=body.model
    ))
    return SaveMessageResponse(message=message)


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: int,
    service: ConversationService = Depends(get_conversation_service)
):
    await service.delete_message(message_id)
    return {"status": "success", "message": "Message deleted"}


@router.delete("/cleanup", response_model=CleanupResponse)
async def cleanup_old_conversations(
    days: Optional[int] = Query(None, ge=1, description="Retention in days (defaults to CHAT_RETENTION_DAYS)"),
    service: ConversationService = Depends(get_conversation_service),
    settings: Settings = Depends(get_app_settings)
):
    """Delete conversations not updated within the retention period."""
    retention_days = days or settings.chat_retention_days
    deleted_count = await service.cleanup_old_conversations(retention_days)
    return CleanupResponse(
        deleted_count=deleted_count,
        retention_days=retention_days,
        message=f"Deleted {deleted_count} conversations older than {retention_days} days"
    )


@router.get("/{conversation_id}", response_model=ConversationWithMessages)
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    conversation = await service.get_conversation(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return conversation


@router.put("/{conversation_id}")
async def update_conversation_title(
    conversation_id: str,
    body: UpdateConversationTitleRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    await service.update_conversation_title(conversation_id, body.title)
    return {"status": "success", "message": "Conversation updated"}


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    await service.delete_conversation(conversation_id)
    logger.info("conversation_deleted", conversation_id=conversation_id)
    return {"status": "success", "message": "Conversation deleted"}


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
async def get_messages(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    messages = await service.get_messages(conversation_id)
    return MessagesResponse(messages=messages, total=len(messages))


@router.post("/{conversation_id}/branch", response_model=ConversationWithMessages, status_code=201)
async def branch_conversation(
    conversation_id: str,
    body: BranchConversationRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    """
    Copy the conversation's messages up to and including a timestamp into a
    new conversation. The source is left untouched.
    """
    return await service.branch_conversation(conversation_id, body.up_to_timestamp, body.new_title)
