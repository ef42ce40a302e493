"""
Tools the model can call in-band.
"""

from .base import BaseTool, ToolResult
from .parsing import ToolCall, parse_tool_calls
from .registry import ToolRegistry, create_default_registry
from .calculator import CalculatorTool
from .web_search import WebSearchTool
from .website import WebsiteTool

__all__ = [
    "BaseTool",
    "ToolResult",
    "ToolCall",
    "parse_tool_calls",
    "ToolRegistry",
    "create_default_registry",
    "CalculatorTool",
    "WebSearchTool",
    "WebsiteTool",
]
