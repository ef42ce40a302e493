"""
Web search tool using DuckDuckGo.
"""

import asyncio
from typing import Any, Callable

import structlog
from duckduckgo_search import DDGS
from duckduckgo_search.exceptions import DuckDuckGoSearchException

from .base import BaseTool, ToolResult

logger = structlog.get_logger()


class WebSearchTool(BaseTool):
    """Tool for searching the web."""

    def __init__(self, max_results: int = 10, ddgs_factory: Callable[[], DDGS] = DDGS):
        self.max_results = max_results
        self._ddgs_factory = ddgs_factory

    @property
    def name(self) -> str:
        return "ddg_search"

    @property
    def description(self) -> str:
        return """Searches the web using DuckDuckGo.
Important search operators:
cats dogs	results about cats or dogs
"cats and dogs"	exact term (avoid unless necessary)
~"cats and dogs"	semantically similar terms
cats -dogs	reduce results about dogs
cats +dogs	increase results about dogs
cats filetype:pdf	search pdfs about cats (supports doc(x), xls(x), ppt(x), html)
dogs site:example.com	search dogs on example.com
cats -site:example.com	exclude example.com from results
intitle:dogs	title contains "dogs"
inurl:cats	URL contains "cats"

Usage: { "query": "rust async traits" }"""

    def _search(self, query: str) -> list[dict[str, str]]:
        results = []
        with self._ddgs_factory() as ddgs:
            for r in ddgs.text(query, max_results=self.max_results):
                if r.get("title") and r.get("href"):
                    results.append({
                        "title": r["title"],
                        "link": r["href"],
                        "snippet": r.get("body", ""),
                    })
        return results

    async def execute(self, query: str = "", **_: Any) -> ToolResult:
        """Execute web search."""
        if not query:
            return ToolResult.fail("Missing or invalid 'query' parameter")

        try:
            results = await asyncio.to_thread(self._search, query)
        except DuckDuckGoSearchException as e:
            logger.error("DuckDuckGo search error", query=query, error=str(e))
            return ToolResult.fail(f"DuckDuckGo search failed: {e}")

        logger.debug("Web search done", query=query, results=len(results))
        return ToolResult.ok(results)
