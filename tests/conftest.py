"""Shared test fixtures."""

import asyncio
from typing import Dict, List, Optional, Sequence, Union
from unittest.mock import MagicMock

import pytest

from simplemath.conversation.storage import MemoryKeyValueStorage
from simplemath.conversation.store import ConversationStore
from simplemath.llm_client import LLMClient
from simplemath.models import Animation

P5_REPLY = """Here is the animation:

```javascript
function setup() {
  createCanvas(400, 400);
}

function draw() {
  background(220);
  circle(200, 200, 50);
}
```
"""


class ScriptedLLMClient(LLMClient):
    """LLM client returning scripted replies in order.

    A reply that is an Exception instance is raised instead of returned.
    If ``gate`` is set, every call waits on it first.
    """

    def __init__(self, replies: Sequence[Union[str, Exception]], gate: Optional[asyncio.Event] = None):
        super().__init__(None)
        self.replies = list(replies)
        self.gate = gate
        self.calls: List[List[Dict[str, str]]] = []

    async def generate_response(self, messages: Sequence[Dict[str, str]]) -> str:
        self.calls.append(list(messages))
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies[len(self.calls) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture
def store(storage) -> ConversationStore:
    return ConversationStore(storage)


@pytest.fixture
def animation_service() -> MagicMock:
    """Animation collaborator returning a fixed Animation."""
    service = MagicMock()
    service.create_animation.return_value = Animation(
        id="anim-1",
        url="file:///tmp/anim-1.html",
        code="function setup() {}",
    )
    return service


@pytest.fixture
def p5_reply() -> str:
    return P5_REPLY
