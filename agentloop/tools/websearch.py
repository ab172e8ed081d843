"""Brave web search tool."""

from typing import Annotated

import httpx
from pydantic import Field

from agentloop.errors import ToolExecutionError
from agentloop.tools.local import tool

BRAVE_API_URL = "https://api.search.brave.com/res/v1/web/search"
RESULT_COUNT = 5


class BraveWebSearch:
    """Web search through the Brave Search API.

    Requires a Brave API key (the free plan is enough). Expose it to the model
    with ``FunctionToolbox.from_object``.
    """

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None):
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=30.0)

    @tool(
        name="Web_Search",
        description=(
            "A tool that performs web searches using a specified query parameter to retrieve relevant "
            "results from a search engine. As the result you will receive list of websites with description"
        ),
    )
    async def web_search(
        self,
        query: Annotated[
            str,
            Field(
                description=(
                    "The search terms or keywords to be used by the search engine for retrieving relevant results"
                )
            ),
        ],
    ) -> str:
        response = await self.client.get(
            BRAVE_API_URL,
            params={"q": query, "count": str(RESULT_COUNT), "result_filter": "web"},
            headers={"X-Subscription-Token": self.api_key, "Accept": "application/json"},
        )
        response.raise_for_status()
        data = response.json()

        items = data.get("web", {}).get("results")
        if not isinstance(items, list):
            raise ToolExecutionError("web results is not an array", tool_name="Web_Search")

        results = [
            f"Title: {item.get('title', '')}\nDescription: {item.get('description', '')}\nURL: {item.get('url', '')}"
            for item in items
        ]
        return "\n\n".join(results)

    async def aclose(self) -> None:
        await self.client.aclose()