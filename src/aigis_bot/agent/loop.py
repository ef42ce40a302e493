"""
The tool-augmented generation loop.

The model is asked for a response; any in-band tool calls in it are run and
their results fed back, and the model is asked again. This repeats until a
response carries no tool calls, or the model keeps issuing the same call.
"""

from dataclasses import dataclass, field
from typing import Callable

import structlog

from ..llm import BaseLLM, LLMMessage
from ..tools import ToolRegistry
from ..tools.parsing import ToolCall, parse_tool_calls

logger = structlog.get_logger()

THINK_END = "</think>"


def strip_reasoning(text: str) -> str:
    """Keep only what follows the last ``</think>``, trimmed."""
    return text.split(THINK_END)[-1].strip()


@dataclass
class LoopResult:
    """Outcome of one generation loop run."""

    text: str
    aborted: bool = False
    model_calls: int = 0
    tool_calls: list[ToolCall] = field(default_factory=list)
    messages: list[LLMMessage] = field(default_factory=list)

    @property
    def reply(self) -> str | None:
        """Post-processed reply, or None when there's nothing worth sending."""
        reply = strip_reasoning(self.text)
        return reply or None


class GenerationLoop:
    """Runs the model/tool exchange for one turn.

    ``repeat_limit`` bounds how many times in a row the same call (first
    call of each batch, compared by name and arguments) may be executed.
    When the model asks for it once more, the loop stops and the last
    response is used as-is.
    """

    def __init__(
        self,
        llm: BaseLLM,
        registry: ToolRegistry,
        system_prompt: str | None = None,
        repeat_limit: int = 3,
    ):
        self.llm = llm
        self.registry = registry
        self.system_prompt = system_prompt
        self.repeat_limit = repeat_limit

    async def _ask(
        self,
        messages: list[LLMMessage],
        on_text: Callable[[str], None] | None,
    ) -> str:
        if on_text is None:
            return await self.llm.generate(messages, system_prompt=self.system_prompt)

        chunks = []
        async for chunk in self.llm.stream(messages, system_prompt=self.system_prompt):
            on_text(chunk)
            chunks.append(chunk)
        return "".join(chunks)

    async def run(
        self,
        messages: list[LLMMessage],
        on_text: Callable[[str], None] | None = None,
    ) -> LoopResult:
        """Drive the exchange to completion.

        Args:
            messages: Conversation so far; not modified.
            on_text: When given, responses are streamed and each chunk is
                passed to it as it arrives.

        Raises:
            GenerationError: if the model gateway fails at any step.
        """
        history = list(messages)
        result = LoopResult(text="", messages=history)

        response = await self._ask(history, on_text)
        result.model_calls = 1

        last_signature: tuple[str, str] | None = None
        repeats = 0

        while True:
            calls = parse_tool_calls(response)
            if not calls:
                break

            signature = calls[0].signature()
            if signature == last_signature:
                if repeats >= self.repeat_limit:
                    logger.warning(
                        "Tool call repeated too many times, stopping",
                        tool_name=calls[0].name,
                        repeats=repeats,
                    )
                    result.aborted = True
                    break
                repeats += 1
            else:
                last_signature = signature
                repeats = 1

            history.append(LLMMessage.assistant(response))

            for call in calls:
                tool_result = await self.registry.execute(call.name, call.arguments)
                history.append(LLMMessage.tool(call.name, tool_result.to_message()))
                result.tool_calls.append(call)

            response = await self._ask(history, on_text)
            result.model_calls += 1

        result.text = response
        return result
