"""
In-band tool call directives.

Models that don't speak a native function-calling API are told to emit
calls in the DeepSeek special-token format::

    <｜tool▁calls▁begin｜><｜tool▁call▁begin｜>function<｜tool▁sep｜>calculator
    ```json
    {"expr": "2+2"}
    ```<｜tool▁call▁end｜><｜tool▁calls▁end｜>
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()

CALLS_BEGIN = "<｜tool▁calls▁begin｜>"
CALLS_END = "<｜tool▁calls▁end｜>"
CALL_BEGIN = "<｜tool▁call▁begin｜>"
CALL_END = "<｜tool▁call▁end｜>"
CALL_SEP = "<｜tool▁sep｜>"

TOOL_CALL_PATTERN = re.compile(
    re.escape(CALL_BEGIN)
    + r"(?P<type>\w+)"
    + re.escape(CALL_SEP)
    + r"(?P<name>\w+)\s*```json\s*(?P<args>\{.*?\})\s*```\s*"
    + re.escape(CALL_END),
    re.DOTALL,
)

TOOL_CALL_FORMAT = (
    "For each function call, follow this exact format:\n"
    f"{CALLS_BEGIN}{CALL_BEGIN}function{CALL_SEP}function_name\n"
    "```json\n"
    '{"param1": "value1", "param2": "value2"}\n'
    "```\n"
    f"{CALL_END}{CALLS_END}\n"
)


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    type: str = "function"

    def signature(self) -> tuple[str, str]:
        """Comparable (name, arguments) pair, independent of key order."""
        return self.name, json.dumps(self.arguments, sort_keys=True)


def parse_tool_calls(text: str) -> list[ToolCall]:
    """Extract every well-formed call from ``text``, in order.

    Calls whose arguments aren't a JSON object are dropped.
    """
    calls = []

    for match in TOOL_CALL_PATTERN.finditer(text):
        try:
            arguments = json.loads(match.group("args"))
        except json.JSONDecodeError:
            logger.debug("Dropping tool call with invalid arguments", tool_name=match.group("name"))
            continue

        if not isinstance(arguments, dict):
            continue

        calls.append(ToolCall(name=match.group("name"), arguments=arguments, type=match.group("type")))

    return calls
