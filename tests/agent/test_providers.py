"""
Unit tests for the provider adapters.

Tests that OpenAI, Ollama and Anthropic responses are normalized into
ProviderResponse, and that upstream failures surface as ProviderError.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.morrow.agent.domain.entities import (
    ErrorType,
    Message,
    ToolCall,
    ToolDefinition,
)
from src.morrow.agent.domain.errors import ConfigurationError, ProviderError
from src.morrow.agent.providers.anthropic import ANTHROPIC_AVAILABLE, AnthropicAdapter
from src.morrow.agent.providers.base import ProviderConfig
from src.morrow.agent.providers.ollama import OllamaAdapter
from src.morrow.agent.providers.openai import OPENAI_AVAILABLE, OpenAIAdapter


@pytest.fixture
def search_tool():
    return ToolDefinition(
        name="search_knowledge",
        description="Search internal knowledge",
        parameters={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    )


@pytest.fixture
def conversation():
    return [
        Message.system("You are Morrow"),
        Message.user("Find citation tips"),
    ]


def _openai_completion(content="", tool_calls=None, finish_reason="stop", usage=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=usage,
    )


def _openai_tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


# =============================================================================
# OpenAI
# =============================================================================


@pytest.mark.skipif(not OPENAI_AVAILABLE, reason="openai package not installed")
class TestOpenAIAdapter:
    """Tests for the OpenAI adapter."""

    def test_unconfigured_without_key(self):
        """No API key means no client and is_configured False."""
        adapter = OpenAIAdapter(ProviderConfig())
        assert adapter.is_configured() is False
        assert adapter.model_name == "gpt-4o-mini"
        assert adapter.embedding_model == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_send_without_key_raises_configuration_error(self, conversation):
        """Calling an unconfigured adapter raises ConfigurationError."""
        adapter = OpenAIAdapter(ProviderConfig())
        with pytest.raises(ConfigurationError, match="missing API key"):
            await adapter.send_message(conversation)

    @pytest.mark.asyncio
    async def test_tool_calls_normalized(self, conversation, search_tool):
        """Tool calls keep ids and raw argument strings in order."""
        with patch("src.morrow.agent.providers.openai.AsyncOpenAI") as mock_cls:
            client = MagicMock()
            client.chat.completions.create = AsyncMock(
                return_value=_openai_completion(
                    content=None,
                    tool_calls=[
                        _openai_tool_call("call_1", "search_knowledge", '{"query": "citations"}'),
                        _openai_tool_call("call_2", "leads_list", ""),
                    ],
                    finish_reason="tool_calls",
                    usage=SimpleNamespace(prompt_tokens=12, completion_tokens=8, total_tokens=20),
                )
            )
            mock_cls.return_value = client

            adapter = OpenAIAdapter(ProviderConfig(api_key="sk-test"))
            response = await adapter.send_message(conversation, [search_tool])

        assert response.content == ""
        assert [tc.id for tc in response.tool_calls] == ["call_1", "call_2"]
        assert response.tool_calls[0].parse_arguments() == {"query": "citations"}
        assert response.tool_calls[1].arguments == "{}"
        assert response.finish_reason == "tool_calls"
        assert response.usage.total_tokens == 20

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["tools"][0]["function"]["name"] == "search_knowledge"
        assert kwargs["messages"][0] == {"role": "system", "content": "You are Morrow"}

    @pytest.mark.asyncio
    async def test_no_tools_omits_tool_choice(self, conversation):
        """tool_choice is only sent when tools are present."""
        with patch("src.morrow.agent.providers.openai.AsyncOpenAI") as mock_cls:
            client = MagicMock()
            client.chat.completions.create = AsyncMock(
                return_value=_openai_completion(content="Hello")
            )
            mock_cls.return_value = client

            adapter = OpenAIAdapter(ProviderConfig(api_key="sk-test"))
            response = await adapter.send_message(conversation, None, model="gpt-4o")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs
        assert kwargs["model"] == "gpt-4o"
        assert response.content == "Hello"
        assert response.tool_calls == []
        assert response.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_rate_limit_error_type(self, conversation):
        """A 429 from OpenAI becomes ProviderError(RATE_LIMIT)."""
        import openai

        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = openai.RateLimitError(
            "Rate limit reached",
            response=httpx.Response(429, request=request),
            body=None,
        )
        with patch("src.morrow.agent.providers.openai.AsyncOpenAI") as mock_cls:
            client = MagicMock()
            client.chat.completions.create = AsyncMock(side_effect=error)
            mock_cls.return_value = client

            adapter = OpenAIAdapter(ProviderConfig(api_key="sk-test"))
            with pytest.raises(ProviderError) as exc_info:
                await adapter.send_message(conversation)

        assert exc_info.value.error_type == ErrorType.RATE_LIMIT
        assert exc_info.value.status_code == 429
        assert "429" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self, conversation):
        """A completion with no choices is a ProviderError."""
        with patch("src.morrow.agent.providers.openai.AsyncOpenAI") as mock_cls:
            client = MagicMock()
            client.chat.completions.create = AsyncMock(
                return_value=SimpleNamespace(choices=[], usage=None)
            )
            mock_cls.return_value = client

            adapter = OpenAIAdapter(ProviderConfig(api_key="sk-test"))
            with pytest.raises(ProviderError, match="malformed"):
                await adapter.send_message(conversation)

    @pytest.mark.asyncio
    async def test_embed_batch(self):
        """Embeddings come back one per input, in order."""
        with patch("src.morrow.agent.providers.openai.AsyncOpenAI") as mock_cls:
            client = MagicMock()
            client.embeddings.create = AsyncMock(
                return_value=SimpleNamespace(
                    data=[
                        SimpleNamespace(embedding=[0.1, 0.2]),
                        SimpleNamespace(embedding=[0.3, 0.4]),
                    ]
                )
            )
            mock_cls.return_value = client

            adapter = OpenAIAdapter(
                ProviderConfig(api_key="sk-test", embedding_model="text-embedding-3-large")
            )
            vectors = await adapter.embed_batch(["a", "b"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-large", input=["a", "b"]
        )

    @pytest.mark.asyncio
    async def test_embed_batch_empty_input(self):
        """Empty input makes no request."""
        adapter = OpenAIAdapter(ProviderConfig())
        assert await adapter.embed_batch([]) == []


# =============================================================================
# Ollama
# =============================================================================


@pytest.fixture
def ollama_client():
    """Mock httpx async client."""
    client = MagicMock()
    client.post = AsyncMock()
    client.aclose = AsyncMock()
    return client


def _http_response(payload, status_code=200):
    request = httpx.Request("POST", "http://localhost:11434/api/chat")
    return httpx.Response(status_code, json=payload, request=request)


class TestOllamaAdapter:
    """Tests for the Ollama adapter."""

    def test_configured_only_with_base_url(self, ollama_client):
        """Ollama counts as configured once a base URL is supplied."""
        assert OllamaAdapter(ProviderConfig(), client=ollama_client).is_configured() is False
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://ollama:11434"), client=ollama_client
        )
        assert adapter.is_configured() is True
        assert adapter.model_name == "qwen3:4b"

    @pytest.mark.asyncio
    async def test_object_arguments_serialized(self, ollama_client, conversation, search_tool):
        """Tool arguments that arrive as objects become JSON strings."""
        ollama_client.post.return_value = _http_response({
            "message": {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"function": {"name": "search_knowledge", "arguments": {"query": "gbp"}}}
                ],
            },
            "prompt_eval_count": 30,
            "eval_count": 5,
            "done": True,
        })
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://localhost:11434"), client=ollama_client
        )

        response = await adapter.send_message(conversation, [search_tool])

        assert len(response.tool_calls) == 1
        call = response.tool_calls[0]
        assert call.id == "ollama_call_0"
        assert isinstance(call.arguments, str)
        assert json.loads(call.arguments) == {"query": "gbp"}
        assert response.usage.total_tokens == 35
        assert response.finish_reason == "tool_calls"

        path = ollama_client.post.call_args.args[0]
        payload = ollama_client.post.call_args.kwargs["json"]
        assert path == "/api/chat"
        assert payload["stream"] is False
        assert payload["tools"][0]["function"]["name"] == "search_knowledge"

    @pytest.mark.asyncio
    async def test_tool_traffic_flattened(self, ollama_client):
        """Tool requests and results are sent as plain text turns."""
        ollama_client.post.return_value = _http_response({"message": {"content": "done"}})
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://localhost:11434"), client=ollama_client
        )
        messages = [
            Message.user("hi"),
            Message.assistant(None, [ToolCall("c1", "leads_list", "{}")]),
            Message.tool("c1", "leads_list", '{"leads": []}'),
        ]

        await adapter.send_message(messages)

        sent = ollama_client.post.call_args.kwargs["json"]["messages"]
        assert sent[1] == {"role": "assistant", "content": "Calling leads_list with {}"}
        assert sent[2]["role"] == "user"
        assert sent[2]["content"].startswith("Tool result (leads_list)")

    @pytest.mark.asyncio
    async def test_http_error_raises_provider_error(self, ollama_client, conversation):
        """Non-2xx becomes ProviderError carrying the status."""
        ollama_client.post.return_value = _http_response({"error": "model not found"}, 404)
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://localhost:11434"), client=ollama_client
        )

        with pytest.raises(ProviderError) as exc_info:
            await adapter.send_message(conversation)

        assert exc_info.value.status_code == 404
        assert "404" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_embed_batch_one_request_per_text(self, ollama_client):
        """Each text gets its own /api/embeddings call."""
        ollama_client.post.return_value = _http_response({"embedding": [0.5, 0.5]})
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://localhost:11434"), client=ollama_client
        )

        vectors = await adapter.embed_batch(["one", "two"])

        assert vectors == [[0.5, 0.5], [0.5, 0.5]]
        assert ollama_client.post.await_count == 2
        assert ollama_client.post.call_args.kwargs["json"] == {
            "model": "nomic-embed-text",
            "prompt": "two",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body,message",
        [
            (b"<html>proxy error</html>", "malformed response"),
            (b"[0.1, 0.2]", "No embedding returned"),
        ],
    )
    async def test_embed_batch_bad_body(self, ollama_client, body, message):
        """Unparseable or unexpected embedding bodies become ProviderError."""
        request = httpx.Request("POST", "http://localhost:11434/api/embeddings")
        ollama_client.post.return_value = httpx.Response(200, content=body, request=request)
        adapter = OllamaAdapter(
            ProviderConfig(base_url="http://localhost:11434"), client=ollama_client
        )

        with pytest.raises(ProviderError, match=message):
            await adapter.embed_batch(["one"])


# =============================================================================
# Anthropic
# =============================================================================


@pytest.mark.skipif(not ANTHROPIC_AVAILABLE, reason="anthropic package not installed")
class TestAnthropicAdapter:
    """Tests for the Anthropic adapter."""

    def test_message_formatting(self):
        """System lifts out, tool results become tool_result blocks in a user turn."""
        adapter = AnthropicAdapter(ProviderConfig())
        messages = [
            Message.system("You are Morrow"),
            Message.user("Audit my site"),
            Message.assistant("Checking", [ToolCall("tu_1", "website_intel", '{"url": "https://a.example"}')]),
            Message.tool("tu_1", "website_intel", '{"title": "A"}'),
        ]

        system, api_messages = adapter._format_messages_for_api(messages)

        assert system == "You are Morrow"
        assert [m["role"] for m in api_messages] == ["user", "assistant", "user"]
        assistant_blocks = api_messages[1]["content"]
        assert assistant_blocks[0] == {"type": "text", "text": "Checking"}
        assert assistant_blocks[1]["input"] == {"url": "https://a.example"}
        assert api_messages[2]["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "tu_1",
            "content": '{"title": "A"}',
        }

    @pytest.mark.asyncio
    async def test_tool_use_blocks_normalized(self, conversation, search_tool):
        """tool_use blocks become ToolCalls with JSON-string arguments."""
        with patch("src.morrow.agent.providers.anthropic.AsyncAnthropic") as mock_cls:
            client = MagicMock()
            client.messages.create = AsyncMock(
                return_value=SimpleNamespace(
                    content=[
                        SimpleNamespace(type="text", text="Let me look."),
                        SimpleNamespace(
                            type="tool_use",
                            id="toolu_1",
                            name="search_knowledge",
                            input={"query": "reviews"},
                        ),
                    ],
                    stop_reason="tool_use",
                    usage=SimpleNamespace(input_tokens=40, output_tokens=10),
                )
            )
            mock_cls.return_value = client

            adapter = AnthropicAdapter(ProviderConfig(api_key="sk-ant-test"))
            response = await adapter.send_message(conversation, [search_tool])

        assert response.content == "Let me look."
        assert response.tool_calls[0].id == "toolu_1"
        assert response.tool_calls[0].parse_arguments() == {"query": "reviews"}
        assert response.usage.total_tokens == 50

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are Morrow"
        assert kwargs["tools"][0]["input_schema"]["required"] == ["query"]
