"""Message model."""
from sqlalchemy import Column, Integer, Text, ForeignKey, Index, Enum as SQLEnum
import enum

from chatrelay.database import Base


class MessageRole(str, enum.Enum):
    """Message role enum."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(Base):
    """Message in a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_conversation_id", "conversation_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Text, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    # Stored as the enum value with CHECK(role IN ('user', 'assistant', 'system'))
    role = Column(
        SQLEnum(
            MessageRole,
            name="message_role",
            native_enum=False,
            create_constraint=True,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False
    )
    content = Column(Text, nullable=False)
    timestamp = Column(Integer, nullable=False)  # epoch ms

    # Which AI backend produced an assistant message
    provider = Column(Text)
    model = Column(Text)

    def __repr__(self):
        return f"<Message {self.id} role={self.role.value}>"
