"""Tests for the tool registry aggregator."""

import pytest

from agentloop.errors import ToolNotFoundError
from agentloop.tools.base import ToolProvider
from agentloop.tools.local import FunctionToolbox
from agentloop.tools.registry import ToolRegistry


def search_toolbox(label: str) -> FunctionToolbox:
    def search(query: str) -> str:
        return f"{label}:{query}"

    return FunctionToolbox().add_function(search, description=f"Search {label}")


class TestNaming:
    """Public names are ``<ordinal>-<local name>``."""

    def test_same_local_names_do_not_collide(self):
        registry = ToolRegistry([search_toolbox("web"), search_toolbox("docs")])
        assert registry.get_tool_names() == ["0-search", "1-search"]

    def test_descriptors_keep_description_and_schema(self):
        registry = ToolRegistry([search_toolbox("web")])
        [descriptor] = registry.list_tools()

        assert descriptor.description == "Search web"
        assert descriptor.parameters["required"] == ["query"]

    def test_empty_registry(self):
        registry = ToolRegistry()
        assert registry.list_tools() == []
        assert len(registry) == 0

    def test_add_provider_returns_ordinal(self):
        registry = ToolRegistry()
        assert registry.add_provider(search_toolbox("a")) == 0
        assert registry.add_provider(search_toolbox("b")) == 1
        assert len(registry) == 2

    def test_add_tool_creates_new_provider(self):
        registry = ToolRegistry([search_toolbox("web")])
        name = registry.add_tool("echo", lambda params: params["text"], description="Echo text")

        assert name == "1-echo"
        assert registry.get_tool_names() == ["0-search", "1-echo"]

    def test_registry_is_a_tool_provider(self):
        assert isinstance(ToolRegistry(), ToolProvider)


class TestRouting:
    """Calls are routed by ordinal prefix."""

    @pytest.mark.asyncio
    async def test_invoke_routes_to_matching_provider(self):
        registry = ToolRegistry([search_toolbox("web"), search_toolbox("docs")])

        assert await registry.invoke("1-search", '{"query": "pydantic"}') == "docs:pydantic"
        assert await registry.invoke("0-search", '{"query": "pydantic"}') == "web:pydantic"

    @pytest.mark.asyncio
    async def test_local_name_may_contain_separator(self):
        registry = ToolRegistry()
        registry.add_tool("get-data", lambda params: "data")

        assert registry.get_tool_names() == ["0-get-data"]
        assert await registry.invoke("0-get-data", "{}") == "data"

    @pytest.mark.asyncio
    async def test_add_tool_handler_receives_arguments(self):
        registry = ToolRegistry()
        name = registry.add_tool("echo", lambda params: params["text"])

        assert await registry.invoke(name, '{"text": "hello"}') == "hello"

    @pytest.mark.parametrize("name", ["search", "x-search", "2-search", "0-", "-search", "٣-search"])
    @pytest.mark.asyncio
    async def test_unresolvable_names(self, name):
        registry = ToolRegistry([search_toolbox("web"), search_toolbox("docs")])

        with pytest.raises(ToolNotFoundError) as exc_info:
            await registry.invoke(name, "{}")

        assert exc_info.value.tool_name == name

    @pytest.mark.asyncio
    async def test_unknown_local_name_in_valid_provider(self):
        registry = ToolRegistry([search_toolbox("web")])

        with pytest.raises(ToolNotFoundError):
            await registry.invoke("0-fetch", "{}")

    @pytest.mark.asyncio
    async def test_nested_registries(self):
        inner = ToolRegistry([search_toolbox("inner")])
        outer = ToolRegistry([inner])

        assert outer.get_tool_names() == ["0-0-search"]
        assert await outer.invoke("0-0-search", '{"query": "q"}') == "inner:q"
