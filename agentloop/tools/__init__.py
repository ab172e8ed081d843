"""Tool providers and the registry that aggregates them."""

from agentloop.tools.base import ToolProvider
from agentloop.tools.local import FunctionToolbox, ToolDefinition, tool
from agentloop.tools.registry import ToolRegistry

__all__ = ["FunctionToolbox", "ToolDefinition", "ToolProvider", "ToolRegistry", "tool"]
