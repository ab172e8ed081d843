"""agentloop - conversational tool-calling agent engine."""

__version__ = "0.1.0"

from agentloop.errors import (
    AgentError,
    DecodeError,
    IterationLimitError,
    ToolExecutionError,
    ToolNotFoundError,
    TransportError,
    UnsupportedResponseError,
)
from agentloop.services.agent import AgentRunResult, ConversationEngine
from agentloop.services.coercer import ResponseCoercer
from agentloop.tools.local import FunctionToolbox, tool
from agentloop.tools.registry import ToolRegistry

__all__ = [
    "AgentError",
    "AgentRunResult",
    "ConversationEngine",
    "DecodeError",
    "FunctionToolbox",
    "IterationLimitError",
    "ResponseCoercer",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolRegistry",
    "TransportError",
    "UnsupportedResponseError",
    "__version__",
    "tool",
]
