"""
Tests for the CEO Desk language-model backend.
"""
import json

import httpx
import pytest

from ceodesk.errors import ResponderBackendError, ResponderTimeout
from ceodesk.llm import LLMBackend
from ceodesk.models import ChatMessage, MessageRole


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def backend_with(settings, handler) -> LLMBackend:
    client = httpx.AsyncClient(base_url=settings.llm_base_url, transport=httpx.MockTransport(handler))
    return LLMBackend(settings, client=client)


class TestBuildMessages:
    """Test prompt assembly"""

    def test_system_prompt_first(self, settings):
        messages = LLMBackend(settings).build_messages("You are Kenard", [], "hello")
        assert messages == [
            {"role": "system", "content": "You are Kenard"},
            {"role": "user", "content": "hello"},
        ]

    def test_history_window(self, settings):
        history = [
            ChatMessage(role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT, content=str(i))
            for i in range(10)
        ]
        messages = LLMBackend(settings).build_messages("sys", history, "latest")

        # system prompt plus the last five turns, ending with the instruction
        assert len(messages) == 1 + settings.llm_history_window
        assert messages[-1] == {"role": "user", "content": "latest"}
        assert [m["content"] for m in messages[1:-1]] == ["6", "7", "8", "9"]

    def test_history_system_messages_dropped(self, settings):
        history = [ChatMessage(role=MessageRole.SYSTEM, content="client system prompt")]
        messages = LLMBackend(settings).build_messages("sys", history, "hi")
        assert all(m["content"] != "client system prompt" for m in messages)


class TestComplete:
    """Test completion calls"""

    @pytest.mark.asyncio
    async def test_request_payload(self, settings):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers.get("authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion("Hello!"))

        backend = backend_with(settings, handler)
        text = await backend.complete("sys", "hi")

        assert text == "Hello!"
        assert captured["url"] == "http://llm.test/v1/chat/completions"
        assert captured["auth"] == "Bearer test-key"
        assert captured["body"]["model"] == settings.llm_model
        assert captured["body"]["temperature"] == 0.7
        assert captured["body"]["max_tokens"] == 1000
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_http_error(self, settings):
        backend = backend_with(settings, lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(ResponderBackendError, match="HTTP 500"):
            await backend.complete("sys", "hi")

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        backend = backend_with(settings, handler)
        with pytest.raises(ResponderTimeout):
            await backend.complete("sys", "hi")

    @pytest.mark.asyncio
    async def test_connection_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend = backend_with(settings, handler)
        with pytest.raises(ResponderBackendError):
            await backend.complete("sys", "hi")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"choices": []},
        {"unexpected": True},
        completion(""),
        completion(None),
    ])
    async def test_malformed_response(self, settings, body):
        backend = backend_with(settings, lambda request: httpx.Response(200, json=body))
        with pytest.raises(ResponderBackendError):
            await backend.complete("sys", "hi")

    @pytest.mark.asyncio
    async def test_non_json_response(self, settings):
        backend = backend_with(settings, lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ResponderBackendError, match="Malformed"):
            await backend.complete("sys", "hi")
