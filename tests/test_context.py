"""
Tests for context assembly and retrieval.
"""

import pytest
from unittest.mock import AsyncMock

from aigis_bot.agent.context import ContextAssembler, dedup_by_id, render_post
from aigis_bot.bluesky.records import ExternalEmbed, PostRecord
from aigis_bot.errors import EmbeddingError, RetrievalError
from aigis_bot.memory import InMemoryMemoryStore, MemoryEntry


def _entry(id: str, content: str = "", tags: list[str] | None = None) -> MemoryEntry:
    return MemoryEntry(id=id, content=content or f"memory {id}", embedding=[1.0, 0.0], tags=tags or ["stm"])


def test_render_post():
    """Test message rendering with and without a display name."""
    named = PostRecord(text="hi", handle="a.bsky.social", display_name="Alice")
    bare = PostRecord(text="hi", handle="b.bsky.social")

    assert render_post(named) == "Alice (a.bsky.social): hi"
    assert render_post(bare) == "b.bsky.social: hi"
    assert render_post(PostRecord(text="hi")) == "hi"


def test_dedup_by_id_keeps_first_and_order():
    """Test dedup of [a, b, a, c] -> [a, b, c]."""
    a, b, c = _entry("a"), _entry("b"), _entry("c")
    a2 = _entry("a", content="later duplicate")

    result = dedup_by_id([a, b, a2, c])

    assert [e.id for e in result] == ["a", "b", "c"]
    assert result[0].content == "memory a"


@pytest.mark.asyncio
async def test_assemble_prepends_retrieved_memory(embedder):
    """Test that retrieved memory becomes a single leading system message."""
    store = InMemoryMemoryStore()
    await store.put(MemoryEntry(id="m1", content="old exchange", embedding=embedder.vector("cats"), tags=["stm"]))
    await store.put(MemoryEntry(id="m2", content="archived", embedding=embedder.vector("cats"), tags=["bluesky_post"]))

    thread = [
        PostRecord(text="first", handle="a.bsky.social"),
        PostRecord(text="cats?", handle="b.bsky.social", display_name="Bee"),
    ]

    context = await ContextAssembler(embedder, store, top_k=2).assemble(thread)

    assert [m.role for m in context.messages] == ["system", "user", "user"]
    assert context.messages[0].content == "old exchange\n"
    assert context.messages[-1].content == "Bee (b.bsky.social): cats?"
    assert [e.id for e in context.retrieved] == ["m1"]
    assert len(embedder.calls) == 1
    assert len(embedder.calls[0]) == 2


@pytest.mark.asyncio
async def test_assemble_uses_last_vector_and_embed_summary(embedder):
    """Test that the newest post's embedding is the query and embeds enrich it."""
    store = AsyncMock()
    store.get_similar.return_value = []
    post = PostRecord(text="look", handle="h", embed=ExternalEmbed(uri="https://x.com", title="X"))

    context = await ContextAssembler(embedder, store, top_k=2).assemble([PostRecord(text="a", handle="h"), post])

    embedded = embedder.calls[0][-1]
    assert embedded.startswith("h: look")
    assert "[External link: https://x.com]" in embedded
    assert context.messages[-1].content == "h: look"

    store.get_similar.assert_awaited_once_with(embedder.vector(embedded), tags=["stm"], top_k=2)
    assert context.retrieved_context is None
    assert all(m.role == "user" for m in context.messages)


@pytest.mark.asyncio
async def test_duplicate_retrieved_ids_appear_once(embedder):
    """Test that a memory returned twice is only included once."""
    store = AsyncMock()
    store.get_similar.return_value = [_entry("a", "same memory"), _entry("a", "same memory")]

    context = await ContextAssembler(embedder, store).assemble([PostRecord(text="q", handle="h")])

    assert context.messages[0].content == "same memory\n"


@pytest.mark.asyncio
async def test_embedding_failure_propagates():
    """Test that embedding errors abort assembly."""
    failing = AsyncMock()
    failing.embed.side_effect = EmbeddingError("down")

    with pytest.raises(EmbeddingError):
        await ContextAssembler(failing, InMemoryMemoryStore()).assemble([PostRecord(text="q", handle="h")])


@pytest.mark.asyncio
async def test_retrieval_failure_propagates(embedder):
    """Test that store errors abort assembly."""
    store = AsyncMock()
    store.get_similar.side_effect = RetrievalError("down")

    with pytest.raises(RetrievalError):
        await ContextAssembler(embedder, store).assemble([PostRecord(text="q", handle="h")])
