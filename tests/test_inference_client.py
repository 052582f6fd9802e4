import json

import httpx
import pytest

from datasense.config import Settings
from datasense.services.exceptions import (
    InferenceTimeoutError,
    InferenceUnavailableError,
    MalformedResponseError,
)
from datasense.services.inference_client import (
    OllamaInferenceClient,
    OpenAIInferenceClient,
    create_inference_client,
)


def make_client(handler) -> OllamaInferenceClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaInferenceClient("http://ollama:11434/", "llama3", timeout=5.0, http_client=http_client)


@pytest.mark.asyncio
async def test_infer_posts_non_streaming_generate_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "SELECT 1", "done": True})

    client = make_client(handler)
    assert await client.infer("hello") == "SELECT 1"
    assert seen["url"] == "http://ollama:11434/api/generate"
    assert seen["body"] == {"model": "llama3", "prompt": "hello", "stream": False}


@pytest.mark.asyncio
async def test_infer_server_error_is_unavailable():
    client = make_client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(InferenceUnavailableError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_infer_timeout_is_reported_as_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(InferenceTimeoutError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_timeout_is_still_an_unavailable_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(InferenceUnavailableError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_infer_connection_error_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler)
    with pytest.raises(InferenceUnavailableError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_infer_missing_response_field_is_malformed():
    client = make_client(lambda request: httpx.Response(200, json={"done": True}))
    with pytest.raises(MalformedResponseError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_infer_non_json_body_is_malformed():
    client = make_client(lambda request: httpx.Response(200, text="<html>proxy error</html>"))
    with pytest.raises(MalformedResponseError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_empty_reply_is_returned_not_rejected():
    client = make_client(lambda request: httpx.Response(200, json={"response": ""}))
    assert await client.infer("hello") == ""


def test_factory_defaults_to_ollama():
    config = Settings()
    config.INFERENCE_PROVIDER = "ollama"
    client = create_inference_client(config)
    assert isinstance(client, OllamaInferenceClient)


def test_factory_requires_key_for_openai():
    config = Settings()
    config.INFERENCE_PROVIDER = "openai"
    config.OPENAI_API_KEY = None
    with pytest.raises(RuntimeError):
        create_inference_client(config)


def test_factory_builds_openai_client():
    config = Settings()
    config.INFERENCE_PROVIDER = "openai"
    config.OPENAI_API_KEY = "sk-test"
    client = create_inference_client(config)
    assert isinstance(client, OpenAIInferenceClient)


def completion(choices) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o-mini",
        "choices": choices,
    }


def make_openai_client(handler) -> OpenAIInferenceClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIInferenceClient(
        api_key="sk-test",
        model="gpt-4o-mini",
        base_url="http://llm.test/v1",
        timeout=5.0,
        http_client=http_client,
    )


@pytest.mark.asyncio
async def test_openai_infer_returns_message_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion([{
            "index": 0,
            "message": {"role": "assistant", "content": "SELECT 1"},
            "finish_reason": "stop",
        }]))

    client = make_openai_client(handler)

    assert await client.infer("hello") == "SELECT 1"
    assert seen["path"] == "/v1/chat/completions"
    assert seen["body"]["messages"] == [{"role": "user", "content": "hello"}]


@pytest.mark.asyncio
async def test_openai_server_error_is_unavailable():
    client = make_openai_client(lambda request: httpx.Response(500, json={"error": {"message": "boom"}}))
    with pytest.raises(InferenceUnavailableError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_openai_timeout_is_reported_as_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_openai_client(handler)
    with pytest.raises(InferenceTimeoutError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_openai_connection_error_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = make_openai_client(handler)
    with pytest.raises(InferenceUnavailableError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_openai_empty_choices_is_malformed():
    client = make_openai_client(lambda request: httpx.Response(200, json=completion([])))
    with pytest.raises(MalformedResponseError):
        await client.infer("hello")


@pytest.mark.asyncio
async def test_openai_missing_content_is_malformed():
    client = make_openai_client(lambda request: httpx.Response(200, json=completion([{
        "index": 0,
        "message": {"role": "assistant", "content": None},
        "finish_reason": "stop",
    }])))
    with pytest.raises(MalformedResponseError):
        await client.infer("hello")
