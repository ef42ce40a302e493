"""
Conversational turn orchestration.

For each inbound post this:
1. Decides whether the agent is being addressed (and by someone allowed to)
2. Reconstructs the thread the post belongs to
3. Assembles model input with similar past exchanges retrieved from memory
4. Runs the tool-augmented generation loop
5. Posts the reply and records the exchange as new memory
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

import structlog

from ..bluesky.records import InboundEvent, PostRecord, ReplyRef, StrongRef, decode_post_record
from ..errors import AigisError
from ..memory import ChatLog, Exchange, MemoryEntry, MemoryWriter
from ..metrics import IngestMetrics
from .context import ContextAssembler, render_post
from .loop import GenerationLoop, LoopResult
from .relevance import RelevanceFilter

logger = structlog.get_logger()


class ThreadSource(Protocol):
    async def reconstruct(self, uri: str) -> list[PostRecord]: ...


class Replier(Protocol):
    async def create_reply(self, reply: ReplyRef, text: str, language: str = "en") -> StrongRef: ...


class TurnStatus(str, Enum):
    IGNORED = "ignored"
    SILENT = "silent"
    REPLIED = "replied"


@dataclass
class TurnOutcome:
    status: TurnStatus
    reply_text: str | None = None
    reply: StrongRef | None = None
    memory: MemoryEntry | None = None
    loop: LoopResult | None = None


def build_reply_ref(post: PostRecord, target: StrongRef) -> ReplyRef:
    """Reply pointers for answering ``target``.

    A reply to a reply stays in the same thread; otherwise ``target``
    starts a new one.
    """
    if post.reply is not None:
        return ReplyRef(root=post.reply.root, parent=target)
    return ReplyRef(root=target, parent=target)


class Orchestrator:
    """Handles one inbound event end to end.

    Holds no locks; concurrent calls only share the collaborators.
    """

    def __init__(
        self,
        relevance: RelevanceFilter,
        threads: ThreadSource,
        assembler: ContextAssembler,
        loop: GenerationLoop,
        replier: Replier,
        writer: MemoryWriter,
        metrics: IngestMetrics | None = None,
        language: str = "en",
        archive_posts: bool = False,
    ):
        self.relevance = relevance
        self.threads = threads
        self.assembler = assembler
        self.loop = loop
        self.replier = replier
        self.writer = writer
        self.metrics = metrics or IngestMetrics()
        self.language = language
        self.archive_posts = archive_posts

    async def handle(self, event: InboundEvent) -> TurnOutcome:
        """Process one event, recording metrics whatever happens.

        Raises:
            AigisError: any failure after the relevance check; the event is
                abandoned and no further reply is attempted.
        """
        started = time.perf_counter()
        ok = False

        with structlog.contextvars.bound_contextvars(uri=event.uri):
            try:
                outcome = await self._handle(event)
                ok = True
                return outcome
            except AigisError as e:
                logger.error("Turn failed", error_type=type(e).__name__, error=str(e))
                raise
            finally:
                self.metrics.record(time.perf_counter() - started, ok=ok)

    async def _handle(self, event: InboundEvent) -> TurnOutcome:
        post = decode_post_record(event.record)
        logger.debug("Processing post", text=post.text)

        if event.author_id == self.relevance.agent_did:
            return TurnOutcome(TurnStatus.IGNORED)

        if not self.relevance.is_addressed_to_agent(post) or not self.relevance.is_allowed(event.author_id):
            return TurnOutcome(TurnStatus.IGNORED)

        logger.info("Replying", author=event.author_id)

        thread = await self.threads.reconstruct(event.uri)
        if not thread:
            thread = [replace(post, uri=event.uri, cid=event.content_id, author_did=event.author_id)]

        if self.archive_posts:
            await self._archive(thread)

        context = await self.assembler.assemble(thread)
        result = await self.loop.run(context.messages)

        reply_text = result.reply
        if reply_text is None:
            logger.info("Nothing to say, not replying", aborted=result.aborted)
            return TurnOutcome(TurnStatus.SILENT, loop=result)

        reply_ref = build_reply_ref(post, event.ref)
        created = await self.replier.create_reply(reply_ref, reply_text, self.language)

        exchange = Exchange(
            chat_log=ChatLog(
                post=render_post(thread[-1]),
                response=reply_text,
                poster_did=event.author_id,
            ),
            root_uri=reply_ref.root.uri,
        )
        entry = await self.writer.commit(exchange)

        logger.info(
            "Replied",
            reply_uri=created.uri,
            model_calls=result.model_calls,
            tool_calls=len(result.tool_calls),
            aborted=result.aborted,
        )
        return TurnOutcome(TurnStatus.REPLIED, reply_text=reply_text, reply=created, memory=entry, loop=result)

    async def _archive(self, thread: list[PostRecord]) -> None:
        try:
            await self.writer.archive_posts(thread)
        except Exception:
            logger.exception("Archiving thread posts failed")
