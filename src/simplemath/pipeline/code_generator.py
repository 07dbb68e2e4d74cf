"""Single-shot code generator: one request, settings' system prompt."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..config import Settings
from ..errors import LLMClientError
from ..llm_client import LLMClient
from ..models import GenerateCodeResult, Message, MessageRole, TokenUsage
from .code_extractor import CodeExtractor

logger = logging.getLogger(__name__)


class CodeGenerator:
    """Generate p5.js code from one prompt plus recent conversation history."""

    HISTORY_LIMIT = 5

    def __init__(self, llm_client: LLMClient, settings: Settings, extractor: Optional[CodeExtractor] = None):
        self.llm_client = llm_client
        self.settings = settings
        self.extractor = extractor or CodeExtractor()

    def _build_messages(self, prompt: str, history: Optional[Sequence[Message]]) -> List[Dict[str, str]]:
        messages = [{"role": MessageRole.SYSTEM.value, "content": self.settings.system_prompt}]
        for msg in list(history or [])[-self.HISTORY_LIMIT:]:
            if msg.role in (MessageRole.USER, MessageRole.ASSISTANT):
                messages.append(msg.to_llm_format())
        messages.append({"role": MessageRole.USER.value, "content": prompt})
        return messages

    async def generate_code(self, prompt: str, history: Optional[Sequence[Message]] = None) -> GenerateCodeResult:
        """Generate code; failures are reported in the result, not raised."""
        try:
            reply = await self.llm_client.generate_response(self._build_messages(prompt, history))
        except LLMClientError as e:
            logger.error("Code generation failed: %s", e)
            return GenerateCodeResult(success=False, error=str(e))

        extracted = self.extractor.extract(reply)
        usage = getattr(self.llm_client, "last_usage", None)
        return GenerateCodeResult(
            success=True,
            code=extracted.code,
            explanation=extracted.explanation,
            usage=usage if isinstance(usage, TokenUsage) else None,
        )
