"""Tests for the OpenAI-compatible client against an in-process server."""

import pytest
from aiohttp import test_utils, web

from simplemath.config import Settings, SettingsStore
from simplemath.conversation.storage import MemoryKeyValueStorage
from simplemath.errors import ConfigurationError, EmptyResponseError, RemoteError
from simplemath.llm_client_openai import DEFAULT_MODELS, OpenAICompatibleClient
from simplemath.models import TokenUsage

MESSAGES = [
    {"role": "system", "content": "You are a p5.js expert."},
    {"role": "user", "content": "draw a sine wave"},
]


def make_app(status=200, body=None, models=None, seen=None):
    async def completions(request):
        if seen is not None:
            seen.append({"path": request.path, "headers": dict(request.headers), "json": await request.json()})
        return web.json_response(body, status=status)

    async def list_models(request):
        if models is None:
            return web.json_response({"error": {"message": "not found"}}, status=404)
        return web.json_response({"data": [{"id": m} for m in models]})

    app = web.Application()
    app.router.add_post("/v1/chat/completions", completions)
    app.router.add_get("/v1/models", list_models)
    return app


def settings_for(server, **overrides):
    values = {"api_key": "sk-test", "base_url": f"http://{server.host}:{server.port}", "model": "gpt-4"}
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_generate_response_success():
    seen = []
    body = {
        "choices": [{"message": {"role": "assistant", "content": "hello"}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
    }
    async with test_utils.TestServer(make_app(body=body, seen=seen)) as server:
        client = OpenAICompatibleClient(settings_for(server, temperature=0.2, max_tokens=99))
        reply = await client.generate_response(MESSAGES)

    assert reply == "hello"
    assert client.last_usage == TokenUsage(prompt_tokens=3, completion_tokens=1, total_tokens=4)

    request = seen[0]
    assert request["path"] == "/v1/chat/completions"
    assert request["headers"]["Authorization"] == "Bearer sk-test"
    assert request["json"] == {
        "model": "gpt-4",
        "messages": MESSAGES,
        "temperature": 0.2,
        "max_tokens": 99,
        "stream": False,
    }


@pytest.mark.asyncio
async def test_base_url_with_v1_is_not_doubled():
    seen = []
    body = {"choices": [{"message": {"content": "ok"}}]}
    async with test_utils.TestServer(make_app(body=body, seen=seen)) as server:
        settings = settings_for(server)
        settings.base_url = settings.base_url + "/v1"
        await OpenAICompatibleClient(settings).generate_response(MESSAGES)

    assert seen[0]["path"] == "/v1/chat/completions"


@pytest.mark.asyncio
async def test_remote_error_message_is_surfaced():
    body = {"error": {"message": "Invalid API key"}}
    async with test_utils.TestServer(make_app(status=401, body=body)) as server:
        client = OpenAICompatibleClient(settings_for(server))
        with pytest.raises(RemoteError) as exc_info:
            await client.generate_response(MESSAGES)

    assert exc_info.value.status == 401
    assert exc_info.value.remote_message == "Invalid API key"
    assert "Invalid API key" in str(exc_info.value)


@pytest.mark.asyncio
async def test_remote_error_without_body_uses_status():
    async with test_utils.TestServer(make_app(status=503, body={"detail": "busy"})) as server:
        client = OpenAICompatibleClient(settings_for(server))
        with pytest.raises(RemoteError) as exc_info:
            await client.generate_response(MESSAGES)

    assert exc_info.value.status == 503
    assert exc_info.value.remote_message is None
    assert "HTTP 503" in str(exc_info.value)


@pytest.mark.asyncio
async def test_zero_choices_is_empty_response():
    async with test_utils.TestServer(make_app(body={"choices": []})) as server:
        client = OpenAICompatibleClient(settings_for(server))
        with pytest.raises(EmptyResponseError):
            await client.generate_response(MESSAGES)


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request():
    seen = []
    async with test_utils.TestServer(make_app(body={}, seen=seen)) as server:
        client = OpenAICompatibleClient(settings_for(server, api_key="  "))
        with pytest.raises(ConfigurationError):
            await client.generate_response(MESSAGES)

    assert seen == []


@pytest.mark.asyncio
async def test_connection_failure_is_remote_error():
    client = OpenAICompatibleClient(Settings(api_key="sk-test", base_url="http://127.0.0.1:1", timeout=5))
    with pytest.raises(RemoteError):
        await client.generate_response(MESSAGES)


@pytest.mark.asyncio
async def test_connection_check_reports_error():
    async with test_utils.TestServer(make_app(status=401, body={"error": {"message": "bad key"}})) as server:
        ok, error = await OpenAICompatibleClient(settings_for(server)).test_connection()

    assert ok is False
    assert "bad key" in error


@pytest.mark.asyncio
async def test_list_models():
    async with test_utils.TestServer(make_app(models=["m-1", "m-2"])) as server:
        models = await OpenAICompatibleClient(settings_for(server)).list_models()

    assert models == ["m-1", "m-2"]


@pytest.mark.asyncio
async def test_list_models_falls_back_to_defaults():
    async with test_utils.TestServer(make_app(models=None)) as server:
        models = await OpenAICompatibleClient(settings_for(server)).list_models()

    assert models == DEFAULT_MODELS


@pytest.mark.asyncio
async def test_settings_changes_apply_to_next_request():
    seen = []
    body = {"choices": [{"message": {"content": "ok"}}]}
    async with test_utils.TestServer(make_app(body=body, seen=seen)) as server:
        settings = settings_for(server)
        client = OpenAICompatibleClient(settings)
        settings.model = "gpt-4o"
        await client.generate_completion("hi", system_prompt="sys")

    assert seen[0]["json"]["model"] == "gpt-4o"
    assert seen[0]["json"]["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


@pytest.mark.asyncio
async def test_malformed_usage_is_ignored():
    body = {"choices": [{"message": {"content": "hi"}}], "usage": {"prompt_tokens": None}}
    async with test_utils.TestServer(make_app(body=body)) as server:
        client = OpenAICompatibleClient(settings_for(server))
        reply = await client.generate_response(MESSAGES)

    assert reply == "hi"
    assert client.last_usage is None


@pytest.mark.asyncio
async def test_null_api_key_from_settings_file_is_configuration_error(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text('{"api_key": null, "base_url": null}', encoding="utf-8")
    store = SettingsStore(MemoryKeyValueStorage())
    store.import_from(path)

    client = OpenAICompatibleClient(store.settings)
    with pytest.raises(ConfigurationError):
        await client.generate_response(MESSAGES)
