"""Conversation persistence: the message log and its key-value backends."""

from .storage import FileKeyValueStorage, KeyValueStorage, MemoryKeyValueStorage
from .store import ConversationStore

__all__ = [
    "ConversationStore",
    "KeyValueStorage",
    "FileKeyValueStorage",
    "MemoryKeyValueStorage",
]
