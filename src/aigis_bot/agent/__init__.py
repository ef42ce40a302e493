"""
Agent module - the conversational turn pipeline.

Includes:
- RelevanceFilter: is this post for us?
- ContextAssembler: thread + retrieved memory -> model input
- GenerationLoop: model/tool exchange with a repetition guard
- Orchestrator: one inbound event, end to end
- WorkerPool / AigisService: running it all against the firehose
"""

from .context import AssembledContext, ContextAssembler, dedup_by_id, render_post
from .core import Orchestrator, TurnOutcome, TurnStatus, build_reply_ref
from .loop import GenerationLoop, LoopResult, strip_reasoning
from .pool import WorkerPool
from .prompt import DEFAULT_PERSONA_PROMPT, build_system_prompt, load_persona_prompt
from .relevance import RelevanceFilter

__all__ = [
    "AssembledContext",
    "ContextAssembler",
    "dedup_by_id",
    "render_post",
    "Orchestrator",
    "TurnOutcome",
    "TurnStatus",
    "build_reply_ref",
    "GenerationLoop",
    "LoopResult",
    "strip_reasoning",
    "WorkerPool",
    "DEFAULT_PERSONA_PROMPT",
    "build_system_prompt",
    "load_persona_prompt",
    "RelevanceFilter",
]
