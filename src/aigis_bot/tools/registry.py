"""
Tool registry for managing available tools.
"""

from typing import Any

import structlog

from ..config import Settings
from ..errors import ToolExecutionError, ToolNotFound
from .base import BaseTool, ToolResult
from .parsing import TOOL_CALL_FORMAT

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.info("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def catalog(self) -> str:
        """Tool listing plus call-format instructions for the system prompt.

        Empty when no tools are registered.
        """
        if not self._tools:
            return ""

        lines = ["You have access to the following tools:"]
        for tool in self._tools.values():
            lines.append(f"- {tool.name}: {tool.description}")
        return "\n".join(lines) + "\n" + TOOL_CALL_FORMAT

    async def _run(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        tool = self.get(name)
        if tool is None:
            raise ToolNotFound(name)

        try:
            return await tool.execute(**arguments)
        except Exception as e:
            raise ToolExecutionError(f"{name}: {e}") from e

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Never raises; unknown tools and tool crashes come back as failed results.
        """
        try:
            logger.info("Executing tool", tool_name=name, arguments=arguments)
            result = await self._run(name, arguments)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except ToolNotFound as e:
            logger.warning("Unknown tool requested", tool_name=name)
            return ToolResult.fail(str(e))
        except ToolExecutionError as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return ToolResult.fail(str(e))


def create_default_registry(settings: Settings) -> ToolRegistry:
    """Build a registry with the tools enabled in ``settings``."""
    registry = ToolRegistry()

    if settings.enable_calculator:
        from .calculator import CalculatorTool
        registry.register(CalculatorTool())

    if settings.enable_web_search:
        from .web_search import WebSearchTool
        registry.register(WebSearchTool())

    if settings.enable_website:
        from .website import WebsiteTool
        registry.register(WebsiteTool())

    return registry
