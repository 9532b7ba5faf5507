"""SQLite implementation of the chat repository.

All statements run on the Database's single connection. Compound operations
(save message + bump conversation, delete conversation + messages, retention
cleanup, branch copy) each run inside one transaction, and validation always
happens before the first write of that transaction.

Methods are coroutines for callers but never await internally, so two
operations cannot interleave on the shared connection.
"""
import math
import numbers
import uuid
from contextlib import contextmanager
from typing import Callable, Generator, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrelay.database import Database
from chatrelay.errors import (
    ConversationNotFoundError,
    InvalidMessageError,
    InvalidTimestampError,
    InvalidTitleError,
    MessageNotFoundError,
    NoMessagesFoundError,
    StorageError,
)
from chatrelay.models.conversation import Conversation
from chatrelay.models.message import Message, MessageRole
from chatrelay.repositories.chat_repository import ChatRepository
from chatrelay.schemas.conversation import (
    ConversationRead,
    ConversationWithMessages,
    PersistedMessage,
    SaveMessageData,
)
from chatrelay.utils import MAX_TIMESTAMP, clamp_timestamp, now_ms

logger = structlog.get_logger()


class SqliteChatRepository(ChatRepository):
    """Conversation store backed by one SQLite connection."""

    def __init__(self, database: Database, clock: Callable[[], int] = now_ms):
        """
        Args:
            database: Owner of the shared connection
            clock: Returns the current time in epoch milliseconds
        """
        self.database = database
        self.clock = clock

    @contextmanager
    def _transaction(self) -> Generator[Session, None, None]:
        """Session inside one committed-or-rolled-back transaction."""
        try:
            with self.database.session() as session:
                with session.begin():
                    yield session
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(
                "storage_operation_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise StorageError(f"Storage operation failed: {e}") from e

    async def create_conversation(self, title: str) -> ConversationRead:
        now = self.clock()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            title=title,
            created_at=now,
            updated_at=now
        )

        with self._transaction() as session:
            session.add(conversation)

        return _conversation_read(conversation, message_count=0)

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationWithMessages]:
        with self._transaction() as session:
            conversation = session.get(Conversation, conversation_id)
            if conversation is None:
                return None

            messages = self._ordered_messages(session, conversation_id).all()
            return _with_messages(conversation, messages)

    async def list_conversations(self, limit: int = 50, offset: int = 0) -> List[ConversationRead]:
        with self._transaction() as session:
            message_counts = (
                session.query(
                    Message.conversation_id,
                    func.count(Message.id).label("message_count")
                )
                .group_by(Message.conversation_id)
                .subquery()
            )

            rows = (
                session.query(Conversation, func.coalesce(message_counts.c.message_count, 0))
                .outerjoin(message_counts, message_counts.c.conversation_id == Conversation.id)
                .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )

            return [
                _conversation_read(conversation, message_count=count)
                for conversation, count in rows
            ]

    async def update_conversation_title(self, conversation_id: str, title: str) -> None:
        with self._transaction() as session:
            updated = (
                session.query(Conversation)
                .filter(Conversation.id == conversation_id)
                .update(
                    {
                        Conversation.title: title,
                        Conversation.updated_at: func.max(Conversation.updated_at, self.clock()),
                    },
                    synchronize_session=False
                )
            )
            if updated == 0:
                raise ConversationNotFoundError(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> None:
        with self._transaction() as session:
            session.query(Message).filter(
                Message.conversation_id == conversation_id
            ).delete(synchronize_session=False)

            deleted = session.query(Conversation).filter(
                Conversation.id == conversation_id
            ).delete(synchronize_session=False)

            # Raising rolls back the message delete as well
            if deleted == 0:
                raise ConversationNotFoundError(conversation_id)

    async def save_message(self, data: SaveMessageData) -> PersistedMessage:
        role = _coerce_role(data.role)
        if not isinstance(data.content, str) or not data.content.strip():
            raise InvalidMessageError("Content is required and must be a non-empty string")

        timestamp = self.clock()
        message = Message(
            conversation_id=data.conversation_id,
            role=role,
            content=data.content,
            timestamp=timestamp,
            provider=data.provider or None,
            model=data.model or None
        )

        with self._transaction() as session:
            bumped = (
                session.query(Conversation)
                .filter(Conversation.id == data.conversation_id)
                .update(
                    {Conversation.updated_at: func.max(Conversation.updated_at, timestamp)},
                    synchronize_session=False
                )
            )
            if bumped == 0:
                raise ConversationNotFoundError(data.conversation_id)

            session.add(message)
            session.flush()

        return PersistedMessage.model_validate(message)

    async def get_messages(self, conversation_id: str, limit: int = 1000) -> List[PersistedMessage]:
        with self._transaction() as session:
            messages = self._ordered_messages(session, conversation_id).limit(limit).all()
            return [PersistedMessage.model_validate(m) for m in messages]

    async def delete_message(self, message_id: int) -> None:
        with self._transaction() as session:
            deleted = session.query(Message).filter(
                Message.id == message_id
            ).delete(synchronize_session=False)
            if deleted == 0:
                raise MessageNotFoundError(message_id)

    async def get_conversation_count(self) -> int:
        with self._transaction() as session:
            return session.query(func.count(Conversation.id)).scalar() or 0

    async def delete_old_conversations(self, cutoff_timestamp: int) -> int:
        cutoff_timestamp = clamp_timestamp(cutoff_timestamp)
        with self._transaction() as session:
            stale_ids = select(Conversation.id).where(Conversation.updated_at < cutoff_timestamp)

            session.query(Message).filter(
                Message.conversation_id.in_(stale_ids)
            ).delete(synchronize_session=False)

            deleted = session.query(Conversation).filter(
                Conversation.updated_at < cutoff_timestamp
            ).delete(synchronize_session=False)

        logger.info(
            "old_conversations_deleted",
            cutoff_timestamp=cutoff_timestamp,
            deleted_count=deleted
        )
        return deleted

    async def branch_conversation(
        self,
        source_conversation_id: str,
        up_to_timestamp: int,
        new_title: str
    ) -> ConversationWithMessages:
        if (
            isinstance(up_to_timestamp, bool)
            or not isinstance(up_to_timestamp, numbers.Real)
            or not math.isfinite(up_to_timestamp)
            or up_to_timestamp <= 0
            or up_to_timestamp > MAX_TIMESTAMP
        ):
            raise InvalidTimestampError(up_to_timestamp)

        title = new_title.strip() if isinstance(new_title, str) else ""
        if not title:
            raise InvalidTitleError("Title cannot be empty")

        with self._transaction() as session:
            source = session.get(Conversation, source_conversation_id)
            if source is None:
                raise ConversationNotFoundError(source_conversation_id)

            # Inclusive cutoff: every message sharing the cutoff millisecond is copied
            originals = (
                self._ordered_messages(session, source_conversation_id)
                .filter(Message.timestamp <= up_to_timestamp)
                .all()
            )
            if not originals:
                raise NoMessagesFoundError(source_conversation_id, up_to_timestamp)

            base = self.clock()
            first = originals[0].timestamp

            branch = Conversation(
                id=str(uuid.uuid4()),
                title=title,
                created_at=base,
                updated_at=base
            )
            session.add(branch)
            session.flush()

            # New absolute times, original gaps between messages
            copies = [
                Message(
                    conversation_id=branch.id,
                    role=original.role,
                    content=original.content,
                    timestamp=base + (original.timestamp - first),
                    provider=original.provider,
                    model=original.model
                )
                for original in originals
            ]
            session.add_all(copies)
            branch.updated_at = copies[-1].timestamp
            session.flush()

            result = _with_messages(branch, copies)

        logger.info(
            "conversation_branched",
            source_conversation_id=source_conversation_id,
            conversation_id=result.id,
            up_to_timestamp=up_to_timestamp,
            message_count=len(result.messages)
        )
        return result

    def _ordered_messages(self, session: Session, conversation_id: str):
        return (
            session.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )


def _coerce_role(role) -> MessageRole:
    try:
        return MessageRole(role)
    except ValueError:
        raise InvalidMessageError(
            "Valid role is required (user, assistant, or system)",
            details={"role": str(role)}
        ) from None


def _conversation_read(conversation: Conversation, message_count: Optional[int] = None) -> ConversationRead:
    return ConversationRead(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        message_count=message_count
    )


def _with_messages(conversation: Conversation, messages: List[Message]) -> ConversationWithMessages:
    return ConversationWithMessages(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        message_count=len(messages),
        messages=[PersistedMessage.model_validate(m) for m in messages]
    )
