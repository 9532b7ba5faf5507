"""Initialize the SQLite chat store and optionally run retention cleanup."""
import asyncio
import sys

from chatrelay.config import get_settings
from chatrelay.database import Database
from chatrelay.errors import StorageError
from chatrelay.repositories import SqliteChatRepository
from chatrelay.services.conversations import ConversationService


def init_database(cleanup: bool = False):
    """Create tables and indexes; with cleanup, delete conversations past retention."""
    settings = get_settings()
    path = settings.resolve_database_path()
    print(f"Initializing database at {path}...")

    database = Database(path)
    try:
        database.get_connection()
        print(f"✓ Schema ready (journal mode: {database.journal_mode()})")

        service = ConversationService(SqliteChatRepository(database))
        count = asyncio.run(service.get_conversation_count())
        print(f"✓ {count} conversations stored")

        if cleanup:
            deleted = asyncio.run(service.cleanup_old_conversations(settings.chat_retention_days))
            print(f"✓ Deleted {deleted} conversations older than {settings.chat_retention_days} days")

    except StorageError as e:
        print(f"✗ Error initializing database: {e}")
        sys.exit(1)
    finally:
        database.close()


if __name__ == "__main__":
    init_database(cleanup="--cleanup" in sys.argv[1:])
