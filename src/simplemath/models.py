"""Data models for conversations, animations and round-pipeline status.

Persisted models are pydantic models whose JSON form uses camelCase keys
(``generatedCode``, ``isProgress``, ``createdAt``...) so that snapshots stay
compatible with the browser build of SimpleMath.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TOTAL_ROUNDS = 3

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a time-ordered opaque identifier (base36 epoch ms + random)."""
    return _to_base36(int(time.time() * 1000)) + uuid.uuid4().hex[:10]


class MessageRole(str, Enum):
    """Role of a message in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single transcript entry.

    Messages are frozen; the store replaces a message with a merged copy when
    it is updated by id.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    role: MessageRole
    content: str
    generated_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    round: Optional[int] = Field(default=None, ge=1, le=TOTAL_ROUNDS)
    is_progress: Optional[bool] = None

    def to_llm_format(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class Conversation(BaseModel):
    """An ordered, append-only message log."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def touch(self) -> None:
        self.updated_at = datetime.now()


class TokenUsage(BaseModel):
    """Token accounting reported by the completion endpoint."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Animation(BaseModel):
    """A rendered, playable animation page."""

    id: str
    url: str
    code: str
    title: Optional[str] = None
    width: int = 400
    height: int = 400
    created_at: datetime = Field(default_factory=datetime.now)


class GenerateCodeResult(BaseModel):
    """Outcome of a single-shot code generation request."""

    success: bool
    code: Optional[str] = None
    explanation: Optional[str] = None
    error: Optional[str] = None
    usage: Optional[TokenUsage] = None


@dataclass
class ProcessingStatus:
    """Ephemeral progress of one round-pipeline run.

    Attributes:
        is_processing: True while a run is in flight
        current_round: Round being executed (0 when idle)
        total_rounds: Always TOTAL_ROUNDS
        round_name: Display label of the current round
        round_results: Raw reply text of each completed round, in order
        completed_rounds: Numbers of the completed rounds, in order
    """
    is_processing: bool = False
    current_round: int = 0
    total_rounds: int = TOTAL_ROUNDS
    round_name: str = ""
    round_results: List[str] = field(default_factory=list)
    completed_rounds: List[int] = field(default_factory=list)

    def snapshot(self) -> "ProcessingStatus":
        """Return a copy that later mutations will not affect."""
        return replace(
            self,
            round_results=list(self.round_results),
            completed_rounds=list(self.completed_rounds),
        )

    @property
    def progress_percent(self) -> int:
        return int(len(self.completed_rounds) / self.total_rounds * 100)
