"""Abstract LLM client interface for provider-agnostic usage.

This module defines the minimal async interface expected by the round
pipeline. Concrete provider clients implement ``generate_response``.
"""

from __future__ import annotations

import abc
import asyncio
from typing import Any, Dict, List, Optional, Sequence


class LLMClient(abc.ABC):
    """Abstract base class for all LLM clients.

    Concrete implementations accept a configuration object in their
    constructor (e.g. a ``Settings`` instance).
    """

    def __init__(self, config: Any) -> None:
        self._config = config

    @abc.abstractmethod
    async def generate_response(self, messages: Sequence[Dict[str, str]]) -> str:
        """Send role-tagged messages and return the assistant's reply text.

        Raises:
            LLMClientError: A ConfigurationError, RemoteError or
                EmptyResponseError describing the failure.
        """

    async def generate_completion(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate a reply for a single user prompt."""
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.generate_response(messages)

    def generate_response_sync(self, messages: Sequence[Dict[str, str]]) -> str:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            raise RuntimeError(
                "generate_response_sync() called inside an active event loop. Use the async method instead."
            )

        return asyncio.run(self.generate_response(messages))
