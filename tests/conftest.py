"""Shared fixtures: a scripted chat transport and small tool providers."""

import asyncio
from dataclasses import dataclass

import pytest

from agentloop.models.llm import ChatMessage, ChatOptions, ChatResponse, LLMUsage, ToolCall
from agentloop.models.tool import ToolDescriptor
from agentloop.tools.local import FunctionToolbox


@dataclass
class SentRequest:
    model: str
    messages: list[ChatMessage]
    tools: list[ToolDescriptor]
    options: ChatOptions


class FakeTransport:
    """Chat transport that replays scripted responses and records every request.

    A scripted exception is raised instead of returned.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: list[SentRequest] = []

    def script(self, *responses) -> None:
        self.responses.extend(responses)

    async def send(self, model, messages, tools, options):
        self.requests.append(SentRequest(model, list(messages), list(tools), options))
        # Let other tasks run, as a real network call would
        await asyncio.sleep(0)
        if not self.responses:
            raise AssertionError("FakeTransport received an unscripted request")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text(content: str, usage: LLMUsage | None = None) -> ChatResponse:
    return ChatResponse(text=content, usage=usage, model="fake-model")


def calls(*requested: tuple[str, str]) -> ChatResponse:
    return ChatResponse(
        tool_calls=[
            ToolCall(call_id=f"call_{i}", tool_name=name, arguments=arguments)
            for i, (name, arguments) in enumerate(requested)
        ],
        model="fake-model",
    )


def add(a: int, b: int = 0) -> int:
    """Add two integers."""
    return a + b


def fail(reason: str) -> str:
    """Always fails."""
    raise ValueError(reason)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def math_toolbox():
    return FunctionToolbox().add_function(add).add_function(fail)
