"""Anthropic chat transport with rate limiting and error handling."""

import asyncio
import json
import os
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import tiktoken
from anthropic import APIError, APIStatusError, AsyncAnthropic
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

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

T = TypeVar("T")


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"
    ttl: Literal["5m", "1h"] = "5m"


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    max_tokens: int = 1024
    max_retries: int = 3
    retry_delay: float = 1.0
    requests_per_minute: int = 50
    tokens_per_minute: int = 40_000


class AnthropicRateLimiter:
    """Moving-window limiter for requests and estimated tokens."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within rate limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_reset(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=estimated_tokens):
            await self._wait_for_reset(self.token_limit, token_identifier, "Token")

    async def _wait_for_reset(self, limit: Any, identifier: str, kind: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{kind} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


def _structured_output_instruction(response_format: dict[str, Any]) -> str:
    schema = json.dumps(response_format["schema"])
    return (
        "Respond only with a JSON value that matches this JSON schema, "
        f"without any surrounding text or code fences:\n{schema}"
    )


class AnthropicTransport:
    """Chat transport for the Anthropic Messages API."""

    tokenizer: tiktoken.Encoding | None = None

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        base_url: str | None = None,
        client: AsyncAnthropic | None = None,
    ):
        """Initialize Anthropic transport.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
            base_url: Alternative API endpoint
            client: Preconfigured SDK client
        """
        self.config = config or AnthropicConfig()
        if client is None:
            anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY environment variable is required")
            client = AsyncAnthropic(api_key=anthropic_api_key, base_url=base_url)
        self.client = client
        self.rate_limiter = AnthropicRateLimiter(self.config.requests_per_minute, self.config.tokens_per_minute)

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    async def send(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor],
        options: ChatOptions,
    ) -> ChatResponse:
        system_prompt, message_dicts = self.convert_messages(messages)
        if options.response_format:
            instruction = _structured_output_instruction(options.response_format)
            system_prompt = f"{system_prompt}\n\n{instruction}" if system_prompt else instruction

        estimated_tokens = self.estimate_tokens(system_prompt + json.dumps(message_dicts))
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": options.max_tokens or self.config.max_tokens,
            "messages": message_dicts,
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if options.temperature is not None:
            request_params["temperature"] = options.temperature
        if options.top_p is not None:
            request_params["top_p"] = options.top_p
        if options.stop:
            request_params["stop_sequences"] = options.stop
        if tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in self.convert_tools(tools)]

        logger.debug(f"Creating message with {len(message_dicts)} messages, {len(tools)} tools, model: {model}")
        response: Message = await self._request_with_retries(lambda: self.client.messages.create(**request_params))
        return self.convert_response(response)

    @staticmethod
    def convert_tools(tools: Sequence[ToolDescriptor]) -> list[AnthropicTool]:
        """Convert descriptors, marking the last one so all definitions get cached."""
        converted = []
        for i, tool in enumerate(tools):
            converted.append(
                AnthropicTool(
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=tool.parameters,
                    cache_control=CacheControl() if i == len(tools) - 1 else None,
                )
            )
        return converted

    @staticmethod
    def convert_messages(messages: Sequence[ChatMessage]) -> tuple[str, list[dict[str, Any]]]:
        """Convert history to the system prompt plus Anthropic message dicts.

        Consecutive tool results are merged into one user turn, which is what
        the API expects after an assistant turn with several tool_use blocks.
        """
        system_parts: list[str] = []
        converted: list[dict[str, Any]] = []

        for message in messages:
            if isinstance(message, SystemMessage):
                system_parts.append(message.content)
            elif isinstance(message, UserMessage):
                converted.append({"role": "user", "content": message.content})
            elif isinstance(message, AssistantMessage):
                converted.append({"role": "assistant", "content": message.content})
            elif isinstance(message, ToolCallsMessage):
                blocks: list[dict[str, Any]] = []
                if message.text:
                    blocks.append({"type": "text", "text": message.text})
                for call in message.calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.call_id,
                            "name": call.tool_name,
                            "input": json.loads(call.arguments or "{}"),
                        }
                    )
                converted.append({"role": "assistant", "content": blocks})
            elif isinstance(message, ToolResultMessage):
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.call_id,
                    "content": message.content,
                    "is_error": message.is_error,
                }
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and previous["content"]
                    and previous["content"][-1].get("type") == "tool_result"
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})

        return "\n\n".join(system_parts), converted

    @staticmethod
    def convert_response(response: Message) -> ChatResponse:
        """Convert an Anthropic message to a provider-agnostic response."""
        texts: list[str] = []
        reasoning: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                texts.append(block.text)
            elif block_type == "tool_use":
                tool_calls.append(ToolCall(call_id=block.id, tool_name=block.name, arguments=json.dumps(block.input)))
            elif block_type == "thinking":
                reasoning.append(block.thinking)
            else:
                logger.warning(f"Unknown content block type: {block_type}")

        usage = None
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                cache_creation_input_tokens=response.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=response.usage.cache_read_input_tokens or 0,
            )

        logger.debug(f"Response received - Stop reason: {response.stop_reason}, blocks: {len(response.content)}")

        return ChatResponse(
            text="".join(texts) if texts else None,
            tool_calls=tool_calls,
            reasoning="\n".join(reasoning) if reasoning else None,
            usage=usage,
            model=response.model,
        )

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute Anthropic API request with retry logic.

        Raises:
            TransportError: When the request is not retryable or retries run out
        """
        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                return await call()

            except APIStatusError as e:
                if e.status_code == 429 and not last_attempt:
                    retry_after = int(e.response.headers.get("retry-after", 60))
                    if retry_after < 120:
                        logger.warning(f"Rate limited by Anthropic, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                elif e.status_code >= 500 and not last_attempt:
                    # Server error, retry with exponential backoff
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue

                raise TransportError(f"Anthropic request failed: {e}") from e

            except APIError as e:
                if not last_attempt:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise TransportError(f"Anthropic request failed: {e}") from e

        raise TransportError(f"Failed to complete request after {self.config.max_retries} attempts")

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for rate limiting."""
        try:
            return len(self.tokenizer.encode(text)) if self.tokenizer else len(text) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(text) // 4
