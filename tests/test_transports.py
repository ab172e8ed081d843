"""Tests for the Anthropic and OpenAI chat transports."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from agentloop.clients.anthropic import AnthropicConfig, AnthropicTransport
from agentloop.clients.openai import OpenAITransport
from agentloop.errors import TransportError
from agentloop.models.llm import (
    AssistantMessage,
    ChatOptions,
    SystemMessage,
    ToolCall,
    ToolCallsMessage,
    ToolResultMessage,
    UserMessage,
)
from agentloop.models.tool import ToolDescriptor

HISTORY = [
    SystemMessage(content="Be helpful."),
    UserMessage(content="Weather in Oslo and Rome?"),
    ToolCallsMessage(
        calls=(
            ToolCall(call_id="c1", tool_name="0-weather", arguments='{"city": "Oslo"}'),
            ToolCall(call_id="c2", tool_name="0-weather", arguments='{"city": "Rome"}'),
        ),
        text="Checking both.",
    ),
    ToolResultMessage(call_id="c1", content="-3C"),
    ToolResultMessage(call_id="c2", content="Unknown city", is_error=True),
    AssistantMessage(content="Cold in Oslo."),
]

TOOLS = [
    ToolDescriptor(name="0-weather", description="Current weather", schema={"type": "object"}),
    ToolDescriptor(name="1-time"),
]


def anthropic_message(content, usage=None):
    return SimpleNamespace(
        content=content,
        usage=usage
        or SimpleNamespace(
            input_tokens=12, output_tokens=4, cache_creation_input_tokens=None, cache_read_input_tokens=3
        ),
        stop_reason="end_turn",
        model="claude-test",
    )


def status_error(error_class, status_code: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return error_class("failure", response=httpx.Response(status_code, request=request), body=None)


@pytest.fixture
def anthropic_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=anthropic_message([SimpleNamespace(type="text", text="hi")]))
    return client


@pytest.fixture
def anthropic_transport(anthropic_client):
    with patch("agentloop.clients.anthropic.tiktoken.encoding_for_model", side_effect=KeyError("gpt-4")):
        return AnthropicTransport(client=anthropic_client, config=AnthropicConfig(retry_delay=0))


class TestAnthropicConversion:
    def test_system_is_separated(self):
        system, messages = AnthropicTransport.convert_messages(HISTORY)

        assert system == "Be helpful."
        assert [message["role"] for message in messages] == ["user", "assistant", "user", "assistant"]

    def test_tool_calls_become_tool_use_blocks(self):
        _, messages = AnthropicTransport.convert_messages(HISTORY)

        assert messages[1]["content"] == [
            {"type": "text", "text": "Checking both."},
            {"type": "tool_use", "id": "c1", "name": "0-weather", "input": {"city": "Oslo"}},
            {"type": "tool_use", "id": "c2", "name": "0-weather", "input": {"city": "Rome"}},
        ]

    def test_consecutive_tool_results_share_one_turn(self):
        _, messages = AnthropicTransport.convert_messages(HISTORY)

        assert messages[2]["content"] == [
            {"type": "tool_result", "tool_use_id": "c1", "content": "-3C", "is_error": False},
            {"type": "tool_result", "tool_use_id": "c2", "content": "Unknown city", "is_error": True},
        ]

    def test_only_last_tool_is_cached(self):
        converted = AnthropicTransport.convert_tools(TOOLS)

        assert converted[0].cache_control is None
        assert converted[1].cache_control is not None
        assert converted[1].input_schema == {"type": "object", "properties": {}}

    def test_response_blocks(self):
        response = anthropic_message(
            [
                SimpleNamespace(type="thinking", thinking="Need the weather tool."),
                SimpleNamespace(type="text", text="Let me check."),
                SimpleNamespace(type="tool_use", id="c9", name="0-weather", input={"city": "Oslo"}),
            ]
        )

        converted = AnthropicTransport.convert_response(response)

        assert converted.text == "Let me check."
        assert converted.reasoning == "Need the weather tool."
        assert converted.tool_calls == [ToolCall(call_id="c9", tool_name="0-weather", arguments='{"city": "Oslo"}')]
        assert converted.usage.total_tokens == 16
        assert converted.usage.cache_read_input_tokens == 3
        assert converted.model == "claude-test"

    def test_response_without_text(self):
        response = anthropic_message([SimpleNamespace(type="tool_use", id="c1", name="0-time", input={})])
        assert AnthropicTransport.convert_response(response).text is None


class TestAnthropicSend:
    @pytest.mark.asyncio
    async def test_request_parameters(self, anthropic_transport, anthropic_client):
        response = await anthropic_transport.send("claude-test", HISTORY[:2], TOOLS, ChatOptions())

        params = anthropic_client.messages.create.await_args.kwargs
        assert response.text == "hi"
        assert params["model"] == "claude-test"
        assert params["system"] == "Be helpful."
        assert params["temperature"] == 0.2
        assert params["max_tokens"] == 1024
        assert [tool["name"] for tool in params["tools"]] == ["0-weather", "1-time"]

    @pytest.mark.asyncio
    async def test_structured_output_instruction(self, anthropic_transport, anthropic_client):
        options = ChatOptions(response_format={"name": "ResponseFormat", "schema": {"type": "integer"}})

        await anthropic_transport.send("claude-test", HISTORY[:2], [], options)

        params = anthropic_client.messages.create.await_args.kwargs
        assert params["system"].startswith("Be helpful.\n\n")
        assert '{"type": "integer"}' in params["system"]
        assert "tools" not in params

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, anthropic_transport, anthropic_client):
        anthropic_client.messages.create.side_effect = status_error(anthropic.BadRequestError, 400)

        with pytest.raises(TransportError):
            await anthropic_transport.send("claude-test", HISTORY[:2], [], ChatOptions())

        assert anthropic_client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, anthropic_transport, anthropic_client):
        anthropic_client.messages.create.side_effect = [
            status_error(anthropic.InternalServerError, 500),
            anthropic_message([SimpleNamespace(type="text", text="recovered")]),
        ]

        response = await anthropic_transport.send("claude-test", HISTORY[:2], [], ChatOptions())

        assert response.text == "recovered"
        assert anthropic_client.messages.create.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_run_out(self, anthropic_transport, anthropic_client):
        anthropic_client.messages.create.side_effect = status_error(anthropic.InternalServerError, 500)

        with pytest.raises(TransportError) as exc_info:
            await anthropic_transport.send("claude-test", HISTORY[:2], [], ChatOptions())

        assert isinstance(exc_info.value.__cause__, anthropic.InternalServerError)
        assert anthropic_client.messages.create.await_count == 3

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            AnthropicTransport()

    def test_token_estimate_fallback(self, anthropic_transport):
        assert anthropic_transport.tokenizer is None
        assert anthropic_transport.estimate_tokens("a" * 400) == 100


def openai_completion(message, usage=True):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(prompt_tokens=20, completion_tokens=5, total_tokens=25) if usage else None,
        model="gpt-test",
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=openai_completion(SimpleNamespace(content="42", tool_calls=None))
    )
    return client


class TestOpenAIConversion:
    def test_messages(self):
        messages = OpenAITransport.convert_messages(HISTORY)

        assert [message["role"] for message in messages] == ["system", "user", "assistant", "tool", "tool", "assistant"]
        assert messages[2]["content"] == "Checking both."
        assert messages[2]["tool_calls"][1] == {
            "id": "c2",
            "type": "function",
            "function": {"name": "0-weather", "arguments": '{"city": "Rome"}'},
        }
        assert messages[4] == {"role": "tool", "tool_call_id": "c2", "content": "Unknown city"}

    def test_tools(self):
        converted = OpenAITransport.convert_tools(TOOLS)
        assert converted[0] == {
            "type": "function",
            "function": {"name": "0-weather", "description": "Current weather", "parameters": {"type": "object"}},
        }
        assert converted[1]["function"]["description"] == ""

    def test_response_with_tool_calls(self):
        message = SimpleNamespace(
            content=None,
            tool_calls=[SimpleNamespace(id="t1", function=SimpleNamespace(name="1-time", arguments=""))],
            reasoning_content="Should check the clock.",
        )

        converted = OpenAITransport.convert_response(openai_completion(message))

        assert converted.text is None
        assert converted.tool_calls == [ToolCall(call_id="t1", tool_name="1-time", arguments="{}")]
        assert converted.reasoning == "Should check the clock."
        assert converted.usage.total_tokens == 25

    def test_response_without_choices(self):
        completion = SimpleNamespace(choices=[], usage=None, model="gpt-test")
        converted = OpenAITransport.convert_response(completion)
        assert converted.text is None
        assert converted.tool_calls == []


class TestOpenAISend:
    @pytest.mark.asyncio
    async def test_response_format_is_wrapped(self, openai_client):
        transport = OpenAITransport(client=openai_client)
        schema = {"name": "ResponseFormat", "schema": {"type": "integer"}}

        response = await transport.send("gpt-test", HISTORY[:2], [], ChatOptions(response_format=schema))

        params = openai_client.chat.completions.create.await_args.kwargs
        assert response.text == "42"
        assert params["response_format"] == {"type": "json_schema", "json_schema": schema}
        assert params["temperature"] == 0.2
        assert "tools" not in params

    @pytest.mark.asyncio
    async def test_api_error_is_transport_error(self, openai_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        openai_client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
        transport = OpenAITransport(client=openai_client)

        with pytest.raises(TransportError):
            await transport.send("gpt-test", HISTORY[:2], TOOLS, ChatOptions())

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAITransport()
