# test_adapters.py
# =============================================================================
# HTTP 适配器单元测试 / HTTP adapter unit tests
# - URL 补全与 Azure 检测 / URL completion & Azure detection
# - 请求构建与响应解析 / Request building & response parsing
# - 重试（httpx.MockTransport） / Retries via httpx.MockTransport
# =============================================================================

import json

import httpx
import pytest

from grouper.llm.adapters import AnthropicAdapter, ChatCompletionsAdapter
from grouper.llm.config import ModelEndpointConfig


def _transport(responses, seen):
    """依次返回预设响应的 MockTransport。 / MockTransport replaying canned responses."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return queue.pop(0)

    return httpx.MockTransport(handler)


class TestChatCompletionsEndpoint:
    def test_appends_chat_completions_to_base_url(self):
        assert ChatCompletionsAdapter._resolve_endpoint(
            "https://api.deepseek.com/v1/"
        ) == "https://api.deepseek.com/v1/chat/completions"

    def test_preserves_full_path_and_query(self):
        url = "https://x.openai.azure.com/openai/chat/completions?api-version=2025-04-01-preview"
        assert ChatCompletionsAdapter._resolve_endpoint(url) == url

    def test_api_version_only_for_azure(self):
        azure = ChatCompletionsAdapter._resolve_endpoint(
            "https://x.cognitiveservices.azure.com/openai", api_version="2025-04-01-preview",
        )
        plain = ChatCompletionsAdapter._resolve_endpoint(
            "https://api.openai.com/v1", api_version="2025-04-01-preview",
        )
        assert "api-version=2025-04-01-preview" in azure
        assert "api-version" not in plain


class TestChatCompletionsCall:
    @pytest.mark.asyncio
    async def test_request_and_response(self):
        seen = []
        adapter = ChatCompletionsAdapter(
            url="https://api.openai.com/v1", api_key="sk-test", model="gpt-4.1-nano",
            max_tokens=256,
            transport=_transport([httpx.Response(200, json={
                "choices": [{"message": {"content": '{"rating": "agree"}'}}],
            })], seen),
        )
        text = await adapter.call("persona", "react")
        assert text == '{"rating": "agree"}'

        request = seen[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4.1-nano"
        assert body["max_tokens"] == 256
        assert body["messages"] == [
            {"role": "system", "content": "persona"},
            {"role": "user", "content": "react"},
        ]

    @pytest.mark.asyncio
    async def test_azure_uses_api_key_header(self):
        seen = []
        adapter = ChatCompletionsAdapter(
            url="https://x.openai.azure.com/openai", api_key="az", model="gpt-4o",
            transport=_transport([httpx.Response(200, json={
                "choices": [{"message": {"content": "ok"}}],
            })], seen),
        )
        await adapter.call("", "hi")
        assert seen[0].headers["api-key"] == "az"
        assert "Authorization" not in seen[0].headers
        assert json.loads(seen[0].content)["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        seen = []
        adapter = ChatCompletionsAdapter(
            url="https://api.openai.com/v1", api_key="k", model="m", max_retries=2,
            transport=_transport([
                httpx.Response(500, text="overloaded"),
                httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}),
            ], seen),
        )
        assert await adapter.call("", "hi") == "ok"
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_raises_runtime_error_after_all_attempts(self):
        seen = []
        adapter = ChatCompletionsAdapter(
            url="https://api.openai.com/v1", api_key="k", model="m", max_retries=1,
            transport=_transport([httpx.Response(429), httpx.Response(429)], seen),
        )
        with pytest.raises(RuntimeError):
            await adapter.call("", "hi")
        assert len(seen) == 2

    def test_from_endpoint_config_requires_url(self):
        with pytest.raises(ValueError):
            ChatCompletionsAdapter.from_endpoint_config(
                ModelEndpointConfig(model_platform="openai", model_name="m", api_key="k")
            )


class TestAnthropicCall:
    @pytest.mark.asyncio
    async def test_request_and_response(self):
        seen = []
        adapter = AnthropicAdapter(
            api_key="ak", model="claude-haiku-4-5",
            transport=_transport([httpx.Response(200, json={
                "content": [{"type": "thinking", "thinking": "..."},
                            {"type": "text", "text": "hello"}],
            })], seen),
        )
        assert await adapter.call("persona", "react") == "hello"

        request = seen[0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "ak"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["system"] == "persona"
        assert body["max_tokens"] == 4096

    def test_custom_url_gets_messages_path(self):
        assert AnthropicAdapter._resolve_endpoint("https://proxy.example/v1") == \
            "https://proxy.example/v1/messages"

    def test_from_endpoint_config_requires_key(self):
        with pytest.raises(ValueError):
            AnthropicAdapter.from_endpoint_config(
                ModelEndpointConfig(model_platform="anthropic", model_name="claude-haiku-4-5")
            )
