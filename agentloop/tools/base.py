"""Base types and definitions for tools."""

import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from agentloop.errors import ToolExecutionError
from agentloop.models.tool import ToolDescriptor

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


@runtime_checkable
class ToolProvider(Protocol):
    """A source of one or more tools.

    ``invoke`` returns the tool's textual result. It raises
    ``ToolNotFoundError`` for names it does not own and ``ToolExecutionError``
    when the tool ran and failed.
    """

    def list_tools(self) -> list[ToolDescriptor]: ...

    async def invoke(self, name: str, arguments: str) -> str: ...


def parse_arguments(arguments: str | dict[str, Any] | None, tool_name: str | None = None) -> dict[str, Any]:
    """Decode a tool call's JSON arguments into a dict.

    Raises:
        ToolExecutionError: If the arguments are not a JSON object
    """
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ToolExecutionError(f"Invalid JSON arguments: {e}", tool_name=tool_name) from e
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ToolExecutionError("Invalid arguments: expected a JSON object", tool_name=tool_name)
    return parsed
