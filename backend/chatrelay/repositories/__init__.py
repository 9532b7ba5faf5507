"""Persistence: conversation repository with its SQLite implementation, and stored settings."""
from chatrelay.repositories.chat_repository import ChatRepository
from chatrelay.repositories.settings_repository import SettingsRepository
from chatrelay.repositories.sqlite_chat_repository import SqliteChatRepository

__all__ = ["ChatRepository", "SettingsRepository", "SqliteChatRepository"]
