"""
Turning a reconstructed thread into model input, with retrieved memory up front.
"""

from dataclasses import dataclass, field

import structlog

from ..bluesky.records import PostRecord, summarize_embed
from ..llm import LLMMessage
from ..memory import BaseEmbedder, BaseMemoryStore, MemoryEntry
from ..memory.store import SHORT_TERM_TAG

logger = structlog.get_logger()


def render_post(post: PostRecord) -> str:
    """``Name (handle): text``, or ``handle: text`` when there is no display name.

    Posts with no known author render as their text alone.
    """
    author = post.author
    return f"{author}: {post.text}" if author else post.text


def embedding_text(post: PostRecord) -> str:
    """Rendered post plus a summary of its embed, if any."""
    summary = summarize_embed(post.embed)
    rendered = render_post(post)
    return f"{rendered} {summary}" if summary else rendered


def dedup_by_id(entries: list[MemoryEntry]) -> list[MemoryEntry]:
    """Drop repeated ids, keeping the first occurrence and the input order."""
    seen: set[str] = set()
    unique = []
    for entry in entries:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        unique.append(entry)
    return unique


@dataclass
class AssembledContext:
    messages: list[LLMMessage] = field(default_factory=list)
    retrieved: list[MemoryEntry] = field(default_factory=list)

    @property
    def retrieved_context(self) -> str | None:
        if not self.retrieved:
            return None
        return "".join(f"{entry.content}\n" for entry in self.retrieved)


class ContextAssembler:
    """Builds the message list for one turn.

    Embedding and retrieval failures propagate; a turn never runs without
    the memory lookup it asked for.
    """

    def __init__(self, embedder: BaseEmbedder, store: BaseMemoryStore, top_k: int = 2):
        self.embedder = embedder
        self.store = store
        self.top_k = top_k

    async def assemble(self, thread: list[PostRecord]) -> AssembledContext:
        messages = [LLMMessage.user(render_post(post)) for post in thread]
        if not thread:
            return AssembledContext(messages=messages)

        vectors = await self.embedder.embed([embedding_text(post) for post in thread])

        similar = await self.store.get_similar(vectors[-1], tags=[SHORT_TERM_TAG], top_k=self.top_k)
        retrieved = dedup_by_id(similar)

        context = AssembledContext(messages=messages, retrieved=retrieved)
        if context.retrieved_context:
            messages.insert(0, LLMMessage.system(context.retrieved_context))

        logger.debug("Assembled context", thread_length=len(thread), retrieved=len(retrieved))
        return context
