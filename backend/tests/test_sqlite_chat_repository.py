"""Tests for the SQLite conversation repository."""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrelay.errors import (
    ConversationNotFoundError,
    InvalidMessageError,
    MessageNotFoundError,
    StorageError,
)
from chatrelay.models.message import MessageRole
from chatrelay.schemas.conversation import SaveMessageData
from chatrelay.utils import MAX_TIMESTAMP, MS_PER_DAY
from conftest import START


def message(conversation_id, role="user", content="hello", **kwargs):
    return SaveMessageData(conversation_id=conversation_id, role=role, content=content, **kwargs)


async def test_create_conversation(repository, clock):
    """Test that a new conversation gets an id and equal timestamps."""
    conversation = await repository.create_conversation("Trip planning")

    assert conversation.id
    assert conversation.title == "Trip planning"
    assert conversation.created_at == clock.now
    assert conversation.updated_at == clock.now
    assert conversation.message_count == 0


async def test_create_conversation_ids_are_unique(repository):
    first = await repository.create_conversation("A")
    second = await repository.create_conversation("A")

    assert first.id != second.id


async def test_get_conversation_missing_returns_none(repository):
    assert await repository.get_conversation("does-not-exist") is None


async def test_save_message_assigns_timestamp_and_bumps_conversation(repository, clock):
    """Test that saving stamps the message and moves updated_at forward."""
    conversation = await repository.create_conversation("Chat")
    clock.advance(500)

    saved = await repository.save_message(
        message(conversation.id, role="assistant", content="Try Japan", provider="openai", model="gpt-4o-mini")
    )

    assert saved.id > 0
    assert saved.timestamp == START + 500
    assert saved.role == MessageRole.ASSISTANT
    assert saved.provider == "openai"
    assert saved.model == "gpt-4o-mini"

    stored = await repository.get_conversation(conversation.id)
    assert stored.updated_at == START + 500
    assert stored.created_at == START
    assert [m.content for m in stored.messages] == ["Try Japan"]


async def test_save_message_without_provider_stores_none(repository):
    conversation = await repository.create_conversation("Chat")

    saved = await repository.save_message(message(conversation.id, provider="", model=""))

    assert saved.provider is None
    assert saved.model is None


async def test_save_message_to_missing_conversation(repository):
    """Test that a message for an unknown conversation is rejected and nothing is written."""
    with pytest.raises(ConversationNotFoundError):
        await repository.save_message(message("missing"))

    assert await repository.get_messages("missing") == []


@pytest.mark.parametrize("role", ["robot", "", "USER"])
async def test_save_message_rejects_invalid_role(repository, role):
    conversation = await repository.create_conversation("Chat")

    with pytest.raises(InvalidMessageError):
        await repository.save_message(message(conversation.id, role=role))

    assert await repository.get_messages(conversation.id) == []


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
async def test_save_message_rejects_blank_content(repository, content):
    conversation = await repository.create_conversation("Chat")

    with pytest.raises(InvalidMessageError):
        await repository.save_message(message(conversation.id, content=content))


async def test_save_message_is_atomic(repository, clock):
    """Test that a failed insert also rolls back the conversation timestamp bump."""
    conversation = await repository.create_conversation("Chat")
    clock.advance(1000)

    with patch.object(Session, "flush", side_effect=SQLAlchemyError("disk full")):
        with pytest.raises(StorageError):
            await repository.save_message(message(conversation.id))

    stored = await repository.get_conversation(conversation.id)
    assert stored.updated_at == START
    assert stored.messages == []


async def test_messages_ordered_by_timestamp_then_insertion(repository, clock):
    """Test that messages saved in the same millisecond keep insertion order."""
    conversation = await repository.create_conversation("Chat")

    await repository.save_message(message(conversation.id, content="first"))
    await repository.save_message(message(conversation.id, role="assistant", content="second"))
    clock.advance(10)
    await repository.save_message(message(conversation.id, content="third"))

    messages = await repository.get_messages(conversation.id)

    assert [m.content for m in messages] == ["first", "second", "third"]
    assert messages[0].id < messages[1].id


async def test_get_messages_respects_limit(repository, clock):
    conversation = await repository.create_conversation("Chat")
    for i in range(5):
        clock.advance(1)
        await repository.save_message(message(conversation.id, content=f"m{i}"))

    messages = await repository.get_messages(conversation.id, limit=3)

    assert [m.content for m in messages] == ["m0", "m1", "m2"]


async def test_list_conversations_most_recent_first(repository, clock):
    """Test ordering by updated_at with message counts."""
    older = await repository.create_conversation("Older")
    clock.advance(100)
    newer = await repository.create_conversation("Newer")
    clock.advance(100)
    await repository.save_message(message(older.id))

    listed = await repository.list_conversations()

    assert [c.id for c in listed] == [older.id, newer.id]
    assert [c.message_count for c in listed] == [1, 0]


async def test_list_conversations_pagination(repository, clock):
    ids = []
    for i in range(5):
        clock.advance(1)
        ids.append((await repository.create_conversation(f"C{i}")).id)

    page = await repository.list_conversations(limit=2, offset=1)

    assert [c.id for c in page] == [ids[3], ids[2]]


async def test_update_conversation_title(repository, clock):
    conversation = await repository.create_conversation("Old title")
    clock.advance(250)

    await repository.update_conversation_title(conversation.id, "New title")

    stored = await repository.get_conversation(conversation.id)
    assert stored.title == "New title"
    assert stored.updated_at == START + 250


async def test_updated_at_never_moves_backwards(repository, clock):
    """Test that a clock step backwards does not lower updated_at."""
    conversation = await repository.create_conversation("Chat")
    clock.advance(1000)
    await repository.save_message(message(conversation.id))

    clock.now = START + 10
    await repository.update_conversation_title(conversation.id, "Renamed")
    await repository.save_message(message(conversation.id, content="late"))

    stored = await repository.get_conversation(conversation.id)
    assert stored.updated_at == START + 1000


async def test_update_missing_conversation(repository):
    with pytest.raises(ConversationNotFoundError):
        await repository.update_conversation_title("missing", "Title")


async def test_delete_conversation_removes_messages(repository):
    """Test that deleting a conversation leaves no orphan messages."""
    conversation = await repository.create_conversation("Chat")
    await repository.save_message(message(conversation.id))
    await repository.save_message(message(conversation.id, role="assistant", content="reply"))

    await repository.delete_conversation(conversation.id)

    assert await repository.get_conversation(conversation.id) is None
    assert await repository.get_messages(conversation.id) == []
    assert await repository.get_conversation_count() == 0


async def test_delete_missing_conversation(repository):
    with pytest.raises(ConversationNotFoundError):
        await repository.delete_conversation("missing")


async def test_delete_message(repository):
    conversation = await repository.create_conversation("Chat")
    kept = await repository.save_message(message(conversation.id, content="keep"))
    dropped = await repository.save_message(message(conversation.id, content="drop"))

    await repository.delete_message(dropped.id)

    assert [m.id for m in await repository.get_messages(conversation.id)] == [kept.id]

    with pytest.raises(MessageNotFoundError):
        await repository.delete_message(dropped.id)


async def test_get_conversation_count(repository):
    assert await repository.get_conversation_count() == 0

    await repository.create_conversation("A")
    await repository.create_conversation("B")

    assert await repository.get_conversation_count() == 2


async def test_delete_old_conversations(repository, clock):
    """Test retention: 3 stale conversations go, 2 recent ones stay."""
    stale = []
    for i in range(3):
        conversation = await repository.create_conversation(f"Old {i}")
        await repository.save_message(message(conversation.id))
        stale.append(conversation.id)

    clock.advance(100 * MS_PER_DAY)
    fresh = [(await repository.create_conversation(f"New {i}")).id for i in range(2)]

    deleted = await repository.delete_old_conversations(clock.now - 90 * MS_PER_DAY)

    assert deleted == 3
    assert await repository.get_conversation_count() == 2
    assert {c.id for c in await repository.list_conversations()} == set(fresh)
    for conversation_id in stale:
        assert await repository.get_messages(conversation_id) == []


async def test_delete_old_conversations_nothing_to_delete(repository):
    await repository.create_conversation("Recent")

    assert await repository.delete_old_conversations(START - 1) == 0
    assert await repository.get_conversation_count() == 1


@pytest.mark.parametrize("cutoff", [MAX_TIMESTAMP + 1, 10**20])
async def test_delete_old_conversations_far_future_cutoff(repository, cutoff):
    """Test that a cutoff past the INTEGER range deletes everything instead of failing."""
    conversation = await repository.create_conversation("A")
    await repository.save_message(message(conversation.id))
    await repository.create_conversation("B")

    assert await repository.delete_old_conversations(cutoff) == 2
    assert await repository.get_conversation_count() == 0
    assert await repository.get_messages(conversation.id) == []


async def test_delete_old_conversations_far_past_cutoff(repository):
    await repository.create_conversation("A")

    assert await repository.delete_old_conversations(-(10**20)) == 0
    assert await repository.get_conversation_count() == 1


async def test_trip_planning_scenario(repository, clock):
    """Test a full exchange followed by a branch at the assistant reply."""
    conversation = await repository.create_conversation("Trip planning")
    t = clock.now

    await repository.save_message(message(conversation.id, content="Where should I go?"))
    clock.advance(50)
    await repository.save_message(
        message(conversation.id, role="assistant", content="Try Japan", provider="openai", model="gpt-4o-mini")
    )
    clock.advance(100)
    await repository.save_message(message(conversation.id, content="Budget?"))

    clock.advance(10_000)
    branch = await repository.branch_conversation(conversation.id, t + 50, "Trip planning (Branch)")

    assert branch.title == "Trip planning (Branch)"
    assert [m.content for m in branch.messages] == ["Where should I go?", "Try Japan"]
    assert branch.messages[1].timestamp - branch.messages[0].timestamp == 50
    assert branch.messages[1].provider == "openai"

    source = await repository.get_conversation(conversation.id)
    assert len(source.messages) == 3

    listed = await repository.list_conversations()
    assert listed[0].id == branch.id

