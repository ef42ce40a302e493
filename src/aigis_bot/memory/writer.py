"""
Persisting finished exchanges (and optionally source posts) as memory.
"""

import json
import time
import uuid
from dataclasses import asdict, dataclass

import structlog

from ..bluesky.records import ExternalEmbed, PostRecord, embed_tags
from .embedder import BaseEmbedder
from .store import POST_TAG, SHORT_TERM_TAG, BaseMemoryStore, MemoryEntry

logger = structlog.get_logger()


def stable_id(content: str) -> str:
    """Deterministic id for a piece of canonical content."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, content))


@dataclass
class ChatLog:
    """One exchange: what was said to the agent and what it answered."""

    post: str
    response: str
    poster_did: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))


@dataclass
class Exchange:
    chat_log: ChatLog
    root_uri: str


def archival_text(post: PostRecord) -> str:
    """Embedding input for an archived post: its text plus link description and title."""
    text = post.text
    if isinstance(post.embed, ExternalEmbed):
        if post.embed.description:
            text += " " + post.embed.description
        if post.embed.title:
            text += " " + post.embed.title
    return text


class MemoryWriter:
    """Embeds and stores conversational memory."""

    def __init__(self, embedder: BaseEmbedder, store: BaseMemoryStore):
        self.embedder = embedder
        self.store = store

    async def commit(self, exchange: Exchange) -> MemoryEntry:
        """Store a completed exchange as short-term memory.

        Writing the same exchange twice produces the same id, so the store
        simply overwrites it.

        Raises:
            EmbeddingError: if the exchange could not be embedded.
            RetrievalError: if the store write failed.
        """
        content = exchange.chat_log.to_json()
        [vector] = await self.embedder.embed([content])

        entry = MemoryEntry(
            id=stable_id(content),
            content=content,
            embedding=vector,
            tags=[SHORT_TERM_TAG],
            role="user",
            entry_type=POST_TAG,
            conversation_id=stable_id(exchange.root_uri),
            timestamp=int(time.time()),
        )

        await self.store.put(entry)
        logger.debug("Committed exchange", memory_id=entry.id, conversation_id=entry.conversation_id)
        return entry

    def entry_from_post(self, post: PostRecord, vector: list[float]) -> MemoryEntry:
        return MemoryEntry(
            id=stable_id(post.uri),
            content=post.to_json(),
            embedding=vector,
            tags=[POST_TAG, *embed_tags(post.embed)],
            role="user",
            entry_type=POST_TAG,
            conversation_id=stable_id(post.author_did),
            timestamp=int(time.time()),
        )

    async def archive_posts(self, posts: list[PostRecord]) -> list[MemoryEntry]:
        """Store every post of a thread as its own memory entry.

        Raises the same errors as :meth:`commit`; callers decide whether
        that matters.
        """
        if not posts:
            return []

        vectors = await self.embedder.embed([archival_text(p) for p in posts])
        entries = [self.entry_from_post(p, v) for p, v in zip(posts, vectors)]
        await self.store.put_batch(entries)

        logger.debug("Archived posts", count=len(entries))
        return entries
