"""Conversation management service."""
from typing import Callable, List, Optional

import structlog

from chatrelay.repositories.chat_repository import ChatRepository
from chatrelay.schemas.conversation import (
    ConversationRead,
    ConversationWithMessages,
    PersistedMessage,
    SaveMessageData,
)
from chatrelay.utils import now_ms, retention_cutoff

logger = structlog.get_logger()


class ConversationService:
    """Front door to the chat repository for controllers and the chat service."""

    def __init__(self, repository: ChatRepository, clock: Callable[[], int] = now_ms):
        self.repository = repository
        self.clock = clock

    async def create_conversation(self, title: str) -> ConversationRead:
        return await self.repository.create_conversation(title)

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationWithMessages]:
        return await self.repository.get_conversation(conversation_id)

    async def list_conversations(self, limit: int = 50, offset: int = 0) -> List[ConversationRead]:
        return await self.repository.list_conversations(limit, offset)

    async def update_conversation_title(self, conversation_id: str, title: str) -> None:
        await self.repository.update_conversation_title(conversation_id, title)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.repository.delete_conversation(conversation_id)

    async def save_message(self, data: SaveMessageData) -> PersistedMessage:
        return await self.repository.save_message(data)

    async def get_messages(self, conversation_id: str, limit: int = 1000) -> List[PersistedMessage]:
        return await self.repository.get_messages(conversation_id, limit)

    async def delete_message(self, message_id: int) -> None:
        await self.repository.delete_message(message_id)

    async def get_conversation_count(self) -> int:
        return await self.repository.get_conversation_count()

    async def cleanup_old_conversations(self, retention_days: int) -> int:
        """
        Delete conversations not updated within the retention period.

        Args:
            retention_days: Age threshold in days

        Returns:
            Number of conversations deleted

        Example:
            >>> deleted = await service.cleanup_old_conversations(90)
        """
        cutoff = retention_cutoff(retention_days, self.clock())
        deleted_count = await self.repository.delete_old_conversations(cutoff)

        logger.info(
            "conversations_cleaned_up",
            retention_days=retention_days,
            cutoff_timestamp=cutoff,
            deleted_count=deleted_count
        )
        return deleted_count

    async def branch_conversation(
        self,
        source_conversation_id: str,
        up_to_timestamp: int,
        new_title: str
    ) -> ConversationWithMessages:
        return await self.repository.branch_conversation(
            source_conversation_id,
            up_to_timestamp,
            new_title
        )
