"""Registry aggregating tool providers under one namespace."""

from typing import Any

from pydantic import BaseModel

from agentloop.errors import ToolNotFoundError
from agentloop.models.tool import ToolDescriptor
from agentloop.tools.base import ToolHandler, ToolProvider
from agentloop.tools.local import FunctionToolbox
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

NAME_SEPARATOR = "-"


class ToolRegistry:
    """Composes tool providers, renaming every tool to ``"<ordinal>-<name>"``.

    Each provider keeps the ordinal it was given when added, so tools from
    different providers never collide even when their local names do. The
    registry is itself a :class:`ToolProvider` and may be nested.
    """

    def __init__(self, providers: list[ToolProvider] | None = None):
        self._providers: list[ToolProvider] = []
        for provider in providers or []:
            self.add_provider(provider)

    def add_provider(self, provider: ToolProvider) -> int:
        """Append a provider and return its ordinal."""
        self._providers.append(provider)
        ordinal = len(self._providers) - 1
        logger.debug(f"Registered tool provider {type(provider).__name__} as {ordinal}")
        return ordinal

    def add_tool(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str | None = None,
        schema: dict[str, Any] | None = None,
        input_model: type[BaseModel] | None = None,
    ) -> str:
        """Register a single tool and return its public name."""
        toolbox = FunctionToolbox().add(
            name, handler, description=description, schema=schema, input_model=input_model
        )
        ordinal = self.add_provider(toolbox)
        return self.public_name(ordinal, name)

    @staticmethod
    def public_name(ordinal: int, local_name: str) -> str:
        return f"{ordinal}{NAME_SEPARATOR}{local_name}"

    def resolve(self, name: str) -> tuple[ToolProvider, str]:
        """Map a public tool name back to its provider and local name.

        Raises:
            ToolNotFoundError: If the name has no valid ordinal prefix
        """
        prefix, separator, local_name = name.partition(NAME_SEPARATOR)
        if not separator or not local_name or not (prefix.isascii() and prefix.isdigit()):
            raise ToolNotFoundError(name)
        ordinal = int(prefix)
        if ordinal >= len(self._providers):
            raise ToolNotFoundError(name)
        return self._providers[ordinal], local_name

    def list_tools(self) -> list[ToolDescriptor]:
        return [
            descriptor.renamed(self.public_name(ordinal, descriptor.name))
            for ordinal, provider in enumerate(self._providers)
            for descriptor in provider.list_tools()
        ]

    async def invoke(self, name: str, arguments: str) -> str:
        provider, local_name = self.resolve(name)
        return await provider.invoke(local_name, arguments)

    def get_tool_names(self) -> list[str]:
        """Get list of all public tool names."""
        return [descriptor.name for descriptor in self.list_tools()]

    def __len__(self) -> int:
        return len(self._providers)
