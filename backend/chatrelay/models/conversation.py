"""Conversation model."""
from sqlalchemy import Column, Integer, Text, Index

from chatrelay.database import Base


class Conversation(Base):
    """Conversation contains multiple messages."""

    __tablename__ = "conversations"

    id = Column(Text, primary_key=True)  # UUID4 string
    title = Column(Text, nullable=False)
    created_at = Column(Integer, nullable=False)  # epoch ms, set once
    updated_at = Column(Integer, nullable=False)  # epoch ms, bumped on title change and message save

    def __repr__(self):
        return f"<Conversation {self.id} title={self.title!r}>"


Index("idx_conversations_updated_at", Conversation.updated_at.desc())
