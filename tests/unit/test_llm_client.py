"""Unit tests for the LLM collaborators."""
import json

import httpx
import pytest

from vibeflow.collaborators import (
    AnthropicLLMClient,
    EchoLLMClient,
    LLMCallError,
    build_llm_client,
)
from vibeflow.config import Settings


@pytest.fixture
def anthropic_settings():
    return Settings(
        llm_provider="anthropic",
        anthropic_api_key="sk-test",
        anthropic_base_url="https://llm.test",
        llm_max_retries=2,
    )


@pytest.fixture
def sample_anthropic_response():
    return {
        "id": "msg_1",
        "type": "message",
        "model": "claude-test",
        "content": [
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "world"},
        ],
        "usage": {"input_tokens": 7, "output_tokens": 5},
    }


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("vibeflow.collaborators.llm.time.sleep", lambda seconds: None)


def client_with(settings, handler):
    return AnthropicLLMClient(settings, transport=httpx.MockTransport(handler))


def test_parses_response(anthropic_settings, sample_anthropic_response):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=sample_anthropic_response)

    response = client_with(anthropic_settings, handler).call("Say hi", "claude-test")

    assert response.content == "Hello world"
    assert response.model == "claude-test"
    assert response.usage.tokens == 12

    request = seen[0]
    assert str(request.url) == "https://llm.test/v1/messages"
    assert request.headers["x-api-key"] == "sk-test"
    assert json.loads(request.content)["messages"] == [{"role": "user", "content": "Say hi"}]


def test_retries_rate_limit(anthropic_settings, sample_anthropic_response):
    statuses = iter([429, 503, 200])

    def handler(request):
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, json=sample_anthropic_response)
        return httpx.Response(status, json={"error": "busy"})

    response = client_with(anthropic_settings, handler).call("p", "m")

    assert response.content == "Hello world"


def test_gives_up_after_max_retries(anthropic_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"error": "down"})

    with pytest.raises(LLMCallError) as exc_info:
        client_with(anthropic_settings, handler).call("p", "m")

    assert str(exc_info.value) == "Provider returned HTTP 500"
    assert len(calls) == 3


def test_client_errors_are_not_retried(anthropic_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": "bad request"})

    with pytest.raises(LLMCallError) as exc_info:
        client_with(anthropic_settings, handler).call("p", "m")

    assert "HTTP 400" in str(exc_info.value)
    assert len(calls) == 1


def test_timeouts_are_retried_then_reported(anthropic_settings):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(LLMCallError) as exc_info:
        client_with(anthropic_settings, handler).call("p", "m")

    assert "Request timeout" in str(exc_info.value)


def test_missing_api_key():
    with pytest.raises(LLMCallError):
        AnthropicLLMClient(Settings(llm_provider="anthropic", anthropic_api_key=None))


def test_build_llm_client_selects_provider(anthropic_settings):
    assert isinstance(build_llm_client(Settings(llm_provider="echo")), EchoLLMClient)
    assert isinstance(build_llm_client(anthropic_settings), AnthropicLLMClient)
