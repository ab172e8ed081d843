"""Build the tool registry described by the service settings."""

from contextlib import AsyncExitStack

from agentloop.config import AgentSettings, McpServerConfig
from agentloop.tools.local import FunctionToolbox
from agentloop.tools.mcp import McpToolProvider
from agentloop.tools.registry import ToolRegistry
from agentloop.tools.websearch import BraveWebSearch
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


def mcp_provider_for(server: McpServerConfig) -> McpToolProvider:
    if server.url:
        return McpToolProvider.http(server.url, whitelist_tools=server.tools)
    return McpToolProvider.stdio(
        server.command,
        args=server.args,
        env=server.env,
        whitelist_tools=server.tools,
    )


async def build_tool_registry(settings: AgentSettings, stack: AsyncExitStack) -> ToolRegistry:
    """Create the registry, connecting every configured MCP server.

    Connections are entered on ``stack`` and closed when it unwinds.

    Raises:
        TransportError: If an MCP server cannot be started or initialized
    """
    registry = ToolRegistry()

    if settings.brave_api_key:
        websearch = BraveWebSearch(settings.brave_api_key)
        stack.push_async_callback(websearch.aclose)
        registry.add_provider(FunctionToolbox.from_object(websearch))
        logger.info("Web search tool enabled")

    for server in settings.mcp_servers:
        provider = await stack.enter_async_context(mcp_provider_for(server))
        ordinal = registry.add_provider(provider)
        logger.info(f"MCP server '{server.name}' registered as provider {ordinal}")

    return registry
