"""OpenAI-compatible chat transport."""

import os
from collections.abc import Sequence
from typing import Any

from openai import APIError, AsyncOpenAI

from agentloop.errors import TransportError
from agentloop.models.llm import (
    AssistantMessage,
    ChatMessage,
    ChatOptions,
    ChatResponse,
    LLMUsage,
    SystemMessage,
    ToolCall,
    ToolCallsMessage,
    ToolResultMessage,
    UserMessage,
)
from agentloop.models.tool import ToolDescriptor
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


class OpenAITransport:
    """Chat Completions transport for OpenAI and any compatible endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        if client is None:
            openai_api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not openai_api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            client = AsyncOpenAI(api_key=openai_api_key, base_url=base_url)
        self.client = client

    async def send(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor],
        options: ChatOptions,
    ) -> ChatResponse:
        request_params: dict[str, Any] = {
            "model": model,
            "messages": self.convert_messages(messages),
        }
        if tools:
            request_params["tools"] = self.convert_tools(tools)
        if options.temperature is not None:
            request_params["temperature"] = options.temperature
        if options.max_tokens is not None:
            request_params["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            request_params["top_p"] = options.top_p
        if options.stop:
            request_params["stop"] = options.stop
        if options.response_format:
            request_params["response_format"] = {"type": "json_schema", "json_schema": options.response_format}

        logger.debug(f"Creating chat completion with {len(messages)} messages, {len(tools)} tools, model: {model}")
        try:
            completion = await self.client.chat.completions.create(**request_params)
        except APIError as e:
            raise TransportError(f"OpenAI request failed: {e}") from e

        return self.convert_response(completion)

    @staticmethod
    def convert_tools(tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    @staticmethod
    def convert_messages(messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
        converted: list[dict[str, Any]] = []
        for message in messages:
            if isinstance(message, SystemMessage):
                converted.append({"role": "system", "content": message.content})
            elif isinstance(message, UserMessage):
                converted.append({"role": "user", "content": message.content})
            elif isinstance(message, AssistantMessage):
                converted.append({"role": "assistant", "content": message.content})
            elif isinstance(message, ToolCallsMessage):
                converted.append(
                    {
                        "role": "assistant",
                        "content": message.text,
                        "tool_calls": [
                            {
                                "id": call.call_id,
                                "type": "function",
                                "function": {"name": call.tool_name, "arguments": call.arguments},
                            }
                            for call in message.calls
                        ],
                    }
                )
            elif isinstance(message, ToolResultMessage):
                converted.append({"role": "tool", "tool_call_id": message.call_id, "content": message.content})
        return converted

    @staticmethod
    def convert_response(completion: Any) -> ChatResponse:
        if not completion.choices:
            return ChatResponse(model=getattr(completion, "model", ""))

        message = completion.choices[0].message
        tool_calls = [
            ToolCall(call_id=call.id, tool_name=call.function.name, arguments=call.function.arguments or "{}")
            for call in message.tool_calls or []
        ]

        usage = None
        if completion.usage:
            usage = LLMUsage(
                input_tokens=completion.usage.prompt_tokens,
                output_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )

        return ChatResponse(
            text=message.content,
            tool_calls=tool_calls,
            # DeepSeek and other compatible servers put reasoning here
            reasoning=getattr(message, "reasoning_content", None),
            usage=usage,
            model=completion.model,
        )
