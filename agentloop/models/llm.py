"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

DEFAULT_TEMPERATURE = 0.2


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True)


class SystemMessage(_Message):
    """System instruction, always first in a conversation."""

    kind: Literal["system"] = "system"
    content: str


class UserMessage(_Message):
    """Prompt text from the caller."""

    kind: Literal["user"] = "user"
    content: str


class AssistantMessage(_Message):
    """Final text produced by the model."""

    kind: Literal["assistant"] = "assistant"
    content: str


class ToolCall(BaseModel):
    """A single tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    tool_name: str
    arguments: str = "{}"


class ToolCallsMessage(_Message):
    """Every tool call the model emitted in one turn, in emission order."""

    kind: Literal["tool_calls"] = "tool_calls"
    calls: tuple[ToolCall, ...]
    text: str | None = None


class ToolResultMessage(_Message):
    """Result (or failure description) of one tool call."""

    kind: Literal["tool_result"] = "tool_result"
    call_id: str
    content: str
    is_error: bool = False


ChatMessage = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolCallsMessage | ToolResultMessage,
    Field(discriminator="kind"),
]


@dataclass
class ChatOptions:
    """Per-request sampling and output options."""

    temperature: float | None = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    top_p: float | None = None
    stop: list[str] | None = None
    response_format: dict[str, Any] | None = None


@dataclass
class LLMUsage:
    """Token/resource usage information from LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def add(self, other: "LLMUsage | None") -> None:
        """Accumulate another usage record into this one."""
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens
        self.cache_creation_input_tokens += other.cache_creation_input_tokens
        self.cache_read_input_tokens += other.cache_read_input_tokens

    @property
    def cache_hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total_input = self.input_tokens + self.cache_read_input_tokens + self.cache_creation_input_tokens
        if total_input == 0:
            return 0.0
        return (self.cache_read_input_tokens / total_input) * 100


@dataclass
class ChatResponse:
    """Provider-agnostic response from a chat transport.

    Carries either ``text`` or ``tool_calls``; ``reasoning`` is ancillary trace
    output that is logged but never replayed.
    """

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    reasoning: str | None = None
    usage: LLMUsage | None = None
    model: str = ""


@dataclass
class AgentRunResult(Generic[T]):
    """Result from executing an agent run."""

    value: T
    iteration: int
    usage: LLMUsage = field(default_factory=LLMUsage)
