"""Tests for the Brave web search tool."""

import json

import httpx
import pytest

from agentloop.errors import ToolExecutionError
from agentloop.tools.local import FunctionToolbox
from agentloop.tools.websearch import BRAVE_API_URL, BraveWebSearch

RESULTS = {
    "web": {
        "results": [
            {"title": "Rust", "description": "A language empowering everyone", "url": "https://www.rust-lang.org"},
            {"title": "Rust Book", "description": "The book", "url": "https://doc.rust-lang.org/book"},
        ]
    }
}


def toolbox_for(handler) -> FunctionToolbox:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FunctionToolbox.from_object(BraveWebSearch("brave-key", client=client))


class TestWebSearch:
    def test_descriptor(self):
        toolbox = toolbox_for(lambda request: httpx.Response(200, json=RESULTS))
        [descriptor] = toolbox.list_tools()

        assert descriptor.name == "Web_Search"
        assert descriptor.parameters["required"] == ["query"]
        assert "description" in descriptor.parameters["properties"]["query"]

    @pytest.mark.asyncio
    async def test_search_formats_results(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=RESULTS)

        toolbox = toolbox_for(handler)
        output = await toolbox.invoke("Web_Search", json.dumps({"query": "rust language"}))

        assert output == (
            "Title: Rust\nDescription: A language empowering everyone\nURL: https://www.rust-lang.org"
            "\n\n"
            "Title: Rust Book\nDescription: The book\nURL: https://doc.rust-lang.org/book"
        )
        request = seen[0]
        assert str(request.url).startswith(BRAVE_API_URL)
        assert request.url.params["q"] == "rust language"
        assert request.url.params["count"] == "5"
        assert request.headers["X-Subscription-Token"] == "brave-key"

    @pytest.mark.asyncio
    async def test_missing_results_array(self):
        toolbox = toolbox_for(lambda request: httpx.Response(200, json={"web": {}}))

        with pytest.raises(ToolExecutionError, match="web results is not an array"):
            await toolbox.invoke("Web_Search", '{"query": "x"}')

    @pytest.mark.asyncio
    async def test_http_error_is_execution_error(self):
        toolbox = toolbox_for(lambda request: httpx.Response(429, json={"error": "rate limited"}))

        with pytest.raises(ToolExecutionError, match="429"):
            await toolbox.invoke("Web_Search", '{"query": "x"}')
