"""Abstract repository for conversations and messages.

Services and controllers depend on this interface only, so a test double or a
different store can stand in for the SQLite implementation.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from chatrelay.schemas.conversation import (
    ConversationRead,
    ConversationWithMessages,
    PersistedMessage,
    SaveMessageData,
)


class ChatRepository(ABC):
    """Durable operations on conversations and their messages."""

    @abstractmethod
    async def create_conversation(self, title: str) -> ConversationRead:
        """Create an empty conversation."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[ConversationWithMessages]:
        """Conversation with its messages in chronological order, or None."""

    @abstractmethod
    async def list_conversations(self, limit: int = 50, offset: int = 0) -> List[ConversationRead]:
        """Conversations, most recently updated first."""

    @abstractmethod
    async def update_conversation_title(self, conversation_id: str, title: str) -> None:
        """Rename a conversation. Raises ConversationNotFoundError."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation and its messages. Raises ConversationNotFoundError."""

    @abstractmethod
    async def save_message(self, data: SaveMessageData) -> PersistedMessage:
        """Append a message and bump the conversation's updated_at."""

    @abstractmethod
    async def get_messages(self, conversation_id: str, limit: int = 1000) -> List[PersistedMessage]:
        """Messages of a conversation, oldest first."""

    @abstractmethod
    async def delete_message(self, message_id: int) -> None:
        """Delete one message. Raises MessageNotFoundError."""

    @abstractmethod
    async def get_conversation_count(self) -> int:
        """Number of stored conversations."""

    @abstractmethod
    async def delete_old_conversations(self, cutoff_timestamp: int) -> int:
        """Delete conversations last updated before the cutoff; returns how many."""

    @abstractmethod
    async def branch_conversation(
        self,
        source_conversation_id: str,
        up_to_timestamp: int,
        new_title: str
    ) -> ConversationWithMessages:
        """
        Copy the messages of a conversation up to and including a timestamp
        into a new conversation.

        Raises:
            InvalidTimestampError: Cutoff is not a positive finite number
            InvalidTitleError: New title is empty
            ConversationNotFoundError: Source does not exist
            NoMessagesFoundError: No source message at or before the cutoff
        """
