"""Chat transport contract shared by all backend clients."""

from collections.abc import Sequence
from typing import Protocol

from agentloop.models.llm import ChatMessage, ChatOptions, ChatResponse
from agentloop.models.tool import ToolDescriptor


class ChatTransport(Protocol):
    """Sends a full conversation to a chat-completion backend.

    Implementations translate the provider-agnostic messages to their wire
    format and raise ``TransportError`` on any backend failure.
    """

    async def send(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor],
        options: ChatOptions,
    ) -> ChatResponse: ...
