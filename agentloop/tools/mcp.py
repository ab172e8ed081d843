"""Model Context Protocol tool providers.

Proxies tools served by an MCP server, either a subprocess speaking over
stdio or a network server speaking streamable HTTP. Both discover the remote
tools once at connect time and forward calls over the live session.
"""

import asyncio
import re
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamable_http_client
from mcp.shared.exceptions import McpError

from agentloop.errors import ToolExecutionError, ToolNotFoundError, TransportError
from agentloop.models.tool import ToolDescriptor
from agentloop.tools.base import parse_arguments
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INIT_TIMEOUT = 30.0

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def make_name_maps(remote_names: list[str]) -> dict[str, str]:
    """Map backend-safe tool names to remote MCP tool names.

    Chat backends only accept ``[A-Za-z0-9_-]`` so other characters become
    ``_``. Collisions are resolved deterministically by appending ``__2``,
    ``__3``, ...
    """
    local_to_remote: dict[str, str] = {}
    for remote in remote_names:
        base = _INVALID_NAME_CHARS.sub("_", remote) or "tool"
        candidate = base
        i = 2
        while candidate in local_to_remote:
            candidate = f"{base}__{i}"
            i += 1
        local_to_remote[candidate] = remote
    return local_to_remote


def _content_text(content: list[Any]) -> str:
    parts: list[str] = []
    for item in content or []:
        text = getattr(item, "text", None)
        if isinstance(text, str):
            parts.append(text)
        elif hasattr(item, "model_dump_json"):
            parts.append(item.model_dump_json())
        else:
            parts.append(str(item))
    return "\n".join(parts)


StreamOpener = Callable[[], AbstractAsyncContextManager[tuple[Any, Any]]]


@asynccontextmanager
async def _http_streams(url: str) -> AsyncIterator[tuple[Any, Any]]:
    async with streamable_http_client(url) as (read_stream, write_stream, _session_id):
        yield read_stream, write_stream


class McpToolProvider:
    """Tool provider proxying an MCP server session.

    ``open_streams`` opens the read/write streams the session runs over; use
    :meth:`stdio` or :meth:`http` to build one for a subprocess or a network
    server. Use as an async context manager, or call :meth:`connect` and
    :meth:`aclose` yourself.
    """

    def __init__(
        self,
        open_streams: StreamOpener | None = None,
        label: str = "mcp",
        whitelist_tools: list[str] | None = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ):
        self.open_streams = open_streams
        self.label = label
        self.whitelist_tools = whitelist_tools
        self.init_timeout = init_timeout
        self._session: ClientSession | None = None
        self._stack: AsyncExitStack | None = None
        self._tools: list[ToolDescriptor] = []
        self._remote_names: dict[str, str] = {}

    @classmethod
    def stdio(
        cls,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        whitelist_tools: list[str] | None = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ) -> "McpToolProvider":
        """MCP server spawned as a subprocess and spoken to over stdio."""
        params = StdioServerParameters(command=command, args=args or [], env=env, cwd=cwd)
        return cls(
            lambda: stdio_client(params),
            label=" ".join([params.command, *params.args]),
            whitelist_tools=whitelist_tools,
            init_timeout=init_timeout,
        )

    @classmethod
    def http(
        cls,
        url: str,
        whitelist_tools: list[str] | None = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ) -> "McpToolProvider":
        """MCP server reachable over streamable HTTP."""
        return cls(
            lambda: _http_streams(url),
            label=url,
            whitelist_tools=whitelist_tools,
            init_timeout=init_timeout,
        )

    async def connect(self) -> "McpToolProvider":
        """Start the session and discover tools.

        Raises:
            TransportError: If the server cannot be reached or initialized
        """
        if self.open_streams is None:
            raise TransportError(f"{self.label} has no way to open a session")

        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(self.open_streams())
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await asyncio.wait_for(session.initialize(), timeout=self.init_timeout)
            await self.attach(session)
        except Exception as e:
            await stack.aclose()
            raise TransportError(f"Failed to connect to MCP server {self.label}: {e}") from e

        self._stack = stack
        return self

    async def attach(self, session: ClientSession) -> None:
        """Use an already initialized session and load its tool list."""
        self._session = session
        result = await session.list_tools()
        remote_tools = [
            tool
            for tool in result.tools
            if self.whitelist_tools is None or tool.name in self.whitelist_tools
        ]
        self._remote_names = make_name_maps([tool.name for tool in remote_tools])
        by_remote = {tool.name: tool for tool in remote_tools}
        self._tools = [
            ToolDescriptor(
                name=local,
                description=by_remote[remote].description,
                schema=by_remote[remote].inputSchema,
            )
            for local, remote in self._remote_names.items()
        ]
        logger.info(f"Connected to {self.label}: {len(self._tools)} tools")

    async def aclose(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    async def __aenter__(self) -> "McpToolProvider":
        return await self.connect()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def list_tools(self) -> list[ToolDescriptor]:
        return list(self._tools)

    async def invoke(self, name: str, arguments: str) -> str:
        if self._session is None:
            raise TransportError(f"{self.label} is not connected")
        remote_name = self._remote_names.get(name)
        if remote_name is None:
            raise ToolNotFoundError(name)

        params = parse_arguments(arguments, tool_name=name)
        try:
            result = await self._session.call_tool(remote_name, params)
        except McpError as e:
            if "Unknown tool" in str(e):
                raise ToolNotFoundError(name) from e
            raise TransportError(f"MCP call to {remote_name} failed: {e}") from e
        except Exception as e:
            raise TransportError(f"MCP call to {remote_name} failed: {e}") from e

        text = _content_text(result.content)
        if result.isError:
            if "Unknown tool" in text:
                raise ToolNotFoundError(name)
            raise ToolExecutionError(f"Tool error: {text or 'Unknown error'}", tool_name=name)
        return text
