"""Database models."""
from chatrelay.models.conversation import Conversation
from chatrelay.models.message import Message, MessageRole
from chatrelay.models.setting import Setting

__all__ = ["Conversation", "Message", "MessageRole", "Setting"]
