"""OpenAI-compatible chat completion client.

Talks to any endpoint implementing ``POST /v1/chat/completions`` with a
bearer credential. Settings are read on every call, so changes made through
the SettingsStore apply to the next request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
import pydantic

from .config import Settings
from .errors import ConfigurationError, EmptyResponseError, LLMClientError, RemoteError
from .llm_client import LLMClient
from .models import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MODELS = ["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo"]


class OpenAICompatibleClient(LLMClient):
    """LLM client for OpenAI-style completion endpoints.

    Example usage:
        client = OpenAICompatibleClient(Settings(api_key="sk-..."))
        reply = await client.generate_response([
            {"role": "system", "content": "You are a p5.js expert."},
            {"role": "user", "content": "draw a sine wave"},
        ])
    """

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.settings = settings
        self.last_usage: Optional[TokenUsage] = None

    def _api_url(self) -> str:
        """Return the base URL, forced to end with /v1."""
        api_url = self.settings.base_url.strip()
        if not api_url.endswith("/v1"):
            api_url = api_url.rstrip("/") + "/v1"
        return api_url

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }

    def _check_configured(self) -> None:
        if not self.settings.api_key.strip():
            raise ConfigurationError("API key is not configured")
        if not self.settings.base_url.strip():
            raise ConfigurationError("Base URL is not configured")

    def _build_payload(self, messages: Sequence[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "stream": False,
        }

    async def _post_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = f"{self._api_url()}/chat/completions"
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(endpoint, json=payload, headers=self._headers()) as response:
                    logger.debug("Completion request to %s returned %s", endpoint, response.status)
                    if response.status < 200 or response.status >= 300:
                        remote_message = await self._read_error_message(response)
                        detail = remote_message or f"HTTP {response.status}: {response.reason}"
                        raise RemoteError(
                            f"Completion request failed: {detail}",
                            status=response.status,
                            remote_message=remote_message,
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise RemoteError(f"Completion response is not valid JSON: {e}", status=response.status) from e
        except asyncio.TimeoutError as e:
            raise RemoteError(f"Completion request timed out after {self.settings.timeout} seconds") from e
        except aiohttp.ClientError as e:
            raise RemoteError(f"Completion request failed: {e}") from e

        if not isinstance(data, dict):
            raise RemoteError("Completion response is not a JSON object", status=200)
        return data

    @staticmethod
    async def _read_error_message(response: aiohttp.ClientResponse) -> Optional[str]:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return None

    async def generate_response(self, messages: Sequence[Dict[str, str]]) -> str:
        self._check_configured()
        data = await self._post_completion(self._build_payload(messages))

        usage = data.get("usage")
        self.last_usage = None
        if isinstance(usage, dict):
            try:
                self.last_usage = TokenUsage.model_validate(usage)
            except pydantic.ValidationError as e:
                logger.debug("Ignoring malformed usage block: %s", e)

        choices = data.get("choices") or []
        if not choices:
            raise EmptyResponseError("Completion endpoint returned no choices")

        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RemoteError(f"Malformed completion choice: {e}") from e
        return content or ""

    async def test_connection(self) -> Tuple[bool, Optional[str]]:
        """Send a trivial request and report whether it succeeded."""
        try:
            await self.generate_response([
                {"role": "system", "content": "你是一个AI助手。"},
                {"role": "user", "content": '请回复"连接测试成功"'},
            ])
        except LLMClientError as e:
            return False, str(e)
        return True, None

    async def list_models(self) -> List[str]:
        """List model ids offered by the endpoint, or a default list."""
        if not self.settings.base_url.strip():
            return []

        endpoint = f"{self._api_url()}/models"
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(endpoint, headers=self._headers()) as response:
                    if response.status == 200:
                        data = await response.json(content_type=None)
                        models = [m["id"] for m in data.get("data", []) if isinstance(m, dict) and "id" in m]
                        if models:
                            return models
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, AttributeError) as e:
            logger.warning("Failed to fetch available models: %s", e)

        return list(DEFAULT_MODELS)


def create_openai_client(settings: Settings) -> OpenAICompatibleClient:
    """Create an OpenAI-compatible client bound to ``settings``."""
    return OpenAICompatibleClient(settings)
