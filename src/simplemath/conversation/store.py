"""Conversation store with write-through persistence.

Holds the full conversation collection (most recently created first) plus a
reference to the current conversation. Every mutator goes through
``_mutation()`` so that it produces exactly one snapshot write.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..errors import PersistenceError
from ..models import Conversation, Message, MessageRole
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class ConversationStore:
    """Manages the conversation collection and the current conversation.

    Example:
        store = ConversationStore(FileKeyValueStorage(Path("~/.simplemath")))
        store.add_message(MessageRole.USER, "draw a rotating square")
        for msg in store.current_messages:
            print(msg.role.value, msg.content)
    """

    CONVERSATIONS_KEY = "simplemath_conversations"
    CURRENT_KEY = "simplemath_current_conversation"

    def __init__(self, storage: KeyValueStorage, autoload: bool = True):
        """Initialize the store.

        Args:
            storage: Backend receiving whole-state snapshots
            autoload: Load the persisted snapshot immediately
        """
        self._storage = storage
        self._conversations: List[Conversation] = []
        self._current: Optional[Conversation] = None

        if autoload:
            self.load()

    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    @property
    def current_conversation(self) -> Optional[Conversation]:
        return self._current

    @property
    def current_messages(self) -> List[Message]:
        if self._current is None:
            return []
        return list(self._current.messages)

    @property
    def has_messages(self) -> bool:
        return bool(self.current_messages)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    @contextmanager
    def _mutation(self, conversation: Optional[Conversation] = None) -> Iterator[None]:
        """Apply an in-memory change, then persist once.

        Nothing is written if the body raises.
        """
        yield
        if conversation is not None:
            conversation.touch()
        self.save()

    def _new_conversation(self) -> Conversation:
        conversation = Conversation()
        self._conversations.insert(0, conversation)
        self._current = conversation
        return conversation

    def create_conversation(self) -> Conversation:
        """Create an empty conversation and make it current."""
        with self._mutation():
            conversation = self._new_conversation()
        return conversation

    def add_message(
        self,
        role: MessageRole,
        content: str,
        *,
        round: Optional[int] = None,
        is_progress: Optional[bool] = None,
        generated_code: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> Message:
        """Append a message to the current conversation.

        A conversation is created first if none is current.

        Returns:
            The appended Message
        """
        fields: Dict[str, Any] = {
            "role": role,
            "content": content,
            "round": round,
            "is_progress": is_progress,
            "generated_code": generated_code,
        }
        if message_id is not None:
            fields["id"] = message_id
        message = Message(**fields)

        conversation = self._current
        if conversation is None:
            conversation = self._new_conversation()
        with self._mutation(conversation):
            conversation.messages.append(message)
        return message

    def update_message(self, message_id: str, **updates: Any) -> Optional[Message]:
        """Merge ``updates`` into a message of the current conversation.

        Fields not named in ``updates`` (including id and timestamp) are kept.

        Returns:
            The updated Message, or None if no such message exists
        """
        unknown = set(updates) - set(Message.model_fields)
        if unknown:
            raise ValueError(f"Unknown message fields: {', '.join(sorted(unknown))}")

        conversation = self._current
        if conversation is None:
            return None

        for idx, message in enumerate(conversation.messages):
            if message.id == message_id:
                updated = message.model_copy(update=updates)
                with self._mutation(conversation):
                    conversation.messages[idx] = updated
                return updated
        return None

    def remove_progress_message(self, message_id: str) -> bool:
        """Remove a progress message from the current conversation.

        Raises:
            ValueError: If the message exists but is not a progress message

        Returns:
            True if a message was removed
        """
        conversation = self._current
        if conversation is None:
            return False

        for idx, message in enumerate(conversation.messages):
            if message.id == message_id:
                if not message.is_progress:
                    raise ValueError(f"Message {message_id} is not a progress message")
                with self._mutation(conversation):
                    del conversation.messages[idx]
                return True
        return False

    def switch_conversation(self, conversation_id: str) -> bool:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return False
        with self._mutation():
            self._current = conversation
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation.

        If it was current, the head of the collection becomes current.
        """
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return False
        with self._mutation():
            self._conversations.remove(conversation)
            if self._current is conversation:
                self._current = self._conversations[0] if self._conversations else None
        return True

    def clear_all(self) -> None:
        with self._mutation():
            self._conversations = []
            self._current = None

    def save(self) -> None:
        """Write the full snapshot. Failures are logged, never raised."""
        try:
            payload = json.dumps(
                [c.model_dump(mode="json", by_alias=True) for c in self._conversations],
                ensure_ascii=False,
            )
            self._storage.set(self.CONVERSATIONS_KEY, payload)
            if self._current is not None:
                self._storage.set(self.CURRENT_KEY, self._current.id)
            else:
                self._storage.delete(self.CURRENT_KEY)
        except PersistenceError as e:
            logger.warning("Failed to save conversations: %s", e)

    def load(self) -> None:
        """Replace in-memory state with the persisted snapshot.

        Unreadable or malformed data leaves the store empty.
        """
        try:
            raw = self._storage.get(self.CONVERSATIONS_KEY)
            current_id = self._storage.get(self.CURRENT_KEY)
            if raw is None:
                conversations: List[Conversation] = []
            else:
                data = json.loads(raw)
                if not isinstance(data, list):
                    raise ValueError("conversation snapshot is not a list")
                conversations = [Conversation.model_validate(item) for item in data]
        except (PersistenceError, ValueError) as e:
            logger.warning("Failed to load conversations, starting empty: %s", e)
            self._conversations = []
            self._current = None
            return

        self._conversations = conversations
        self._current = None
        if current_id:
            self._current = self.get_conversation(current_id.strip())

    def __len__(self) -> int:
        return len(self._conversations)
