"""
Website tool: fetch a page as markdown-ish text or raw HTML.
"""

from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup, NavigableString, Tag

from .base import BaseTool, ToolResult

logger = structlog.get_logger()

MAX_CONTENT_CHARS = 20000

HEADING_TAGS = {"h1": "#", "h2": "##", "h3": "###", "h4": "####", "h5": "#####", "h6": "######"}
BLOCK_TAGS = {"p", "div", "section", "article", "main", "br", "tr", "table", "blockquote", "pre"}


def _render(node: Any) -> str:
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag):
        return ""

    inner = "".join(_render(child) for child in node.children)

    if node.name in HEADING_TAGS:
        return f"\n\n{HEADING_TAGS[node.name]} {inner.strip()}\n\n"
    if node.name == "a" and node.get("href"):
        text = inner.strip()
        return f"[{text}]({node['href']})" if text else ""
    if node.name in ("strong", "b"):
        return f"**{inner.strip()}**" if inner.strip() else ""
    if node.name in ("em", "i"):
        return f"*{inner.strip()}*" if inner.strip() else ""
    if node.name == "code":
        return f"`{inner}`"
    if node.name == "li":
        return f"\n- {inner.strip()}"
    if node.name in ("ul", "ol"):
        return f"\n{inner}\n"
    if node.name in BLOCK_TAGS:
        return f"\n\n{inner}\n\n"
    return inner


def html_to_markdown(html: str) -> str:
    """Rough HTML to markdown conversion; keeps headings, links, lists and emphasis."""
    soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style", "noscript", "svg", "head"]):
        element.decompose()

    root = soup.body or soup
    text = _render(root)

    lines = [line.strip() for line in text.splitlines()]
    collapsed: list[str] = []
    for line in lines:
        if line or (collapsed and collapsed[-1]):
            collapsed.append(line)
    return "\n".join(collapsed).strip()


class WebsiteTool(BaseTool):
    """Tool for fetching web pages."""

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._client = http_client

    @property
    def name(self) -> str:
        return "website"

    @property
    def description(self) -> str:
        return """Fetches a website.
Parameters:
- `website`: The URL of the website to fetch.
- `render`: Which format to render the content in. Options are "html" or "md" (default is "md").
Example usage: { "website": "https://example.com", "render": "md" }"""

    async def _fetch(self, url: str) -> httpx.Response:
        headers = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}
        if self._client is not None:
            return await self._client.get(url, headers=headers)
        async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    async def execute(self, website: str = "", render: str = "md", **_: Any) -> ToolResult:
        """Fetch ``website`` and render it."""
        if not website:
            return ToolResult.fail("Missing 'website' parameter")
        if render not in ("md", "html"):
            return ToolResult.fail("Invalid 'render' parameter, must be 'html' or 'md'")

        try:
            response = await self._fetch(website)
        except httpx.HTTPError as e:
            logger.error("Website fetch error", url=website, error=str(e))
            return ToolResult.fail(f"Request error: {e}")

        logger.debug("Fetched website", url=website, status=response.status_code, length=len(response.text))

        content = response.text if render == "html" else html_to_markdown(response.text)
        return ToolResult.ok({"content": content[:MAX_CONTENT_CHARS]})
