"""Tests for the conversation store and its storage backends."""

import json
import logging

import pytest

from simplemath.conversation.storage import FileKeyValueStorage, MemoryKeyValueStorage
from simplemath.conversation.store import ConversationStore
from simplemath.errors import PersistenceError
from simplemath.models import MessageRole


class FailingStorage(MemoryKeyValueStorage):
    def set(self, key, value):
        raise PersistenceError("quota exceeded")


def test_add_message_creates_conversation(store):
    assert store.current_conversation is None

    message = store.add_message(MessageRole.USER, "hello")

    assert store.current_conversation is not None
    assert len(store) == 1
    assert store.current_messages == [message]
    assert store.has_messages is True


def test_new_conversations_are_prepended(store):
    first = store.create_conversation()
    second = store.create_conversation()

    assert [c.id for c in store.conversations] == [second.id, first.id]
    assert store.current_conversation is second


def test_add_message_touches_conversation(store):
    conversation = store.create_conversation()
    before = conversation.updated_at

    store.add_message(MessageRole.USER, "hello")

    assert conversation.updated_at >= before


def test_update_message_keeps_id_and_timestamp(store):
    message = store.add_message(MessageRole.ASSISTANT, "reply", round=3)

    updated = store.update_message(message.id, generated_code="function setup(){}")

    assert updated.id == message.id
    assert updated.timestamp == message.timestamp
    assert updated.round == 3
    assert updated.generated_code == "function setup(){}"
    assert store.current_messages[0] == updated


def test_update_unknown_message_returns_none(store):
    store.add_message(MessageRole.USER, "hello")
    assert store.update_message("missing", content="x") is None


def test_update_rejects_unknown_fields(store):
    message = store.add_message(MessageRole.USER, "hello")
    with pytest.raises(ValueError):
        store.update_message(message.id, colour="red")


def test_remove_progress_message(store):
    store.add_message(MessageRole.USER, "hello")
    progress = store.add_message(MessageRole.SYSTEM, "working", is_progress=True, round=1, message_id="progress-1")

    assert store.remove_progress_message(progress.id) is True
    assert [m.content for m in store.current_messages] == ["hello"]
    assert store.remove_progress_message(progress.id) is False


def test_remove_progress_message_refuses_regular_messages(store):
    message = store.add_message(MessageRole.USER, "hello")
    with pytest.raises(ValueError):
        store.remove_progress_message(message.id)
    assert len(store.current_messages) == 1


def test_switch_and_delete_conversation(store):
    first = store.create_conversation()
    second = store.create_conversation()

    assert store.switch_conversation(first.id) is True
    assert store.current_conversation is first
    assert store.switch_conversation("missing") is False

    assert store.delete_conversation(first.id) is True
    assert store.current_conversation is second
    assert store.delete_conversation(second.id) is True
    assert store.current_conversation is None
    assert store.delete_conversation("missing") is False


def test_clear_all(storage, store):
    store.add_message(MessageRole.USER, "hello")

    store.clear_all()

    assert len(store) == 0
    assert store.current_conversation is None
    assert ConversationStore.CURRENT_KEY not in storage


def test_persistence_round_trip(storage, store):
    store.add_message(MessageRole.USER, "hello")
    reply = store.add_message(MessageRole.ASSISTANT, "reply", round=1)
    other = store.create_conversation()
    store.switch_conversation(store.conversations[1].id)

    reloaded = ConversationStore(storage)

    assert [c.id for c in reloaded.conversations] == [c.id for c in store.conversations]
    assert reloaded.current_conversation.id != other.id
    loaded_reply = reloaded.current_messages[1]
    assert loaded_reply.id == reply.id
    assert loaded_reply.round == 1
    assert loaded_reply.timestamp == reply.timestamp
    assert loaded_reply.role == MessageRole.ASSISTANT


def test_snapshot_uses_camel_case_keys(storage, store):
    store.add_message(MessageRole.SYSTEM, "working", is_progress=True, round=2)

    data = json.loads(storage.get(ConversationStore.CONVERSATIONS_KEY))

    assert "createdAt" in data[0]
    assert data[0]["messages"][0]["isProgress"] is True


def test_corrupt_snapshot_loads_empty(caplog):
    storage = MemoryKeyValueStorage({ConversationStore.CONVERSATIONS_KEY: "{not json"})

    with caplog.at_level(logging.WARNING):
        store = ConversationStore(storage)

    assert len(store) == 0
    assert store.current_conversation is None
    assert "Failed to load conversations" in caplog.text


def test_unknown_current_id_leaves_no_current(storage, store):
    store.add_message(MessageRole.USER, "hello")
    storage.set(ConversationStore.CURRENT_KEY, "gone")

    reloaded = ConversationStore(storage)

    assert len(reloaded) == 1
    assert reloaded.current_conversation is None


def test_save_failure_is_logged_not_raised(caplog):
    store = ConversationStore(FailingStorage())

    with caplog.at_level(logging.WARNING):
        message = store.add_message(MessageRole.USER, "hello")

    assert store.current_messages == [message]
    assert "Failed to save conversations" in caplog.text


def test_file_storage(tmp_path):
    storage = FileKeyValueStorage(tmp_path / "data")

    assert storage.get("simplemath_settings") is None
    storage.set("simplemath_settings", '{"model": "gpt-4"}')
    assert (tmp_path / "data" / "simplemath_settings.json").exists()
    assert storage.get("simplemath_settings") == '{"model": "gpt-4"}'

    storage.delete("simplemath_settings")
    storage.delete("simplemath_settings")
    assert storage.get("simplemath_settings") is None


def test_file_storage_rejects_unsafe_keys(tmp_path):
    storage = FileKeyValueStorage(tmp_path)
    with pytest.raises(PersistenceError):
        storage.set("../escape", "x")


def test_file_backed_store_round_trip(tmp_path):
    store = ConversationStore(FileKeyValueStorage(tmp_path))
    store.add_message(MessageRole.USER, "你好")

    reloaded = ConversationStore(FileKeyValueStorage(tmp_path))

    assert reloaded.current_messages[0].content == "你好"
