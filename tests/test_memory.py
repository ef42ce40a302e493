"""
Tests for memory stores and the memory writer.
"""

import json
import uuid

import httpx
import pytest
from unittest.mock import AsyncMock

from aigis_bot.bluesky.records import ExternalEmbed, ImagesEmbed, PostRecord
from aigis_bot.errors import RetrievalError
from aigis_bot.memory import (
    ChatLog,
    Exchange,
    InMemoryMemoryStore,
    MemoryEntry,
    MemoryFilter,
    MemoryWriter,
    QdrantMemoryStore,
    stable_id,
)
from aigis_bot.memory.writer import archival_text


def test_stable_id_is_deterministic():
    """Test that identical content always hashes to the same id."""
    content = ChatLog(post="a: hi", response="hello", poster_did="did:plc:a").to_json()

    assert stable_id(content) == stable_id(content)
    assert stable_id(content) == str(uuid.uuid5(uuid.NAMESPACE_DNS, content))
    assert stable_id(content) != stable_id(content + " ")


def test_chat_log_json_shape():
    """Test canonical exchange serialization."""
    log = ChatLog(post="a: hi", response="hëllo", poster_did="did:plc:a")

    assert log.to_json() == '{"post":"a: hi","response":"hëllo","poster_did":"did:plc:a"}'


@pytest.mark.asyncio
async def test_commit_writes_stm_entry(embedder):
    """Test the exchange memory entry that gets written."""
    store = InMemoryMemoryStore()
    writer = MemoryWriter(embedder, store)
    exchange = Exchange(
        chat_log=ChatLog(post="a: hi", response="hello", poster_did="did:plc:a"),
        root_uri="at://did:plc:a/app.bsky.feed.post/root",
    )

    entry = await writer.commit(exchange)

    assert entry.tags == ["stm"]
    assert entry.role == "user"
    assert entry.entry_type == "bluesky_post"
    assert entry.conversation_id == stable_id("at://did:plc:a/app.bsky.feed.post/root")
    assert json.loads(entry.content) == {"post": "a: hi", "response": "hello", "poster_did": "did:plc:a"}
    assert entry.timestamp > 1_600_000_000
    assert embedder.calls == [[entry.content]]
    assert store.entries[entry.id] is entry


@pytest.mark.asyncio
async def test_commit_twice_is_idempotent(embedder):
    """Test that writing the same exchange twice leaves one entry."""
    store = InMemoryMemoryStore()
    writer = MemoryWriter(embedder, store)
    exchange = Exchange(ChatLog(post="p", response="r", poster_did="d"), root_uri="at://root")

    first = await writer.commit(exchange)
    second = await writer.commit(exchange)

    assert first.id == second.id
    assert len(store.entries) == 1


@pytest.mark.asyncio
async def test_archive_posts(embedder):
    """Test archival entries for thread posts."""
    store = InMemoryMemoryStore()
    writer = MemoryWriter(embedder, store)
    posts = [
        PostRecord(text="look", uri="at://p1", author_did="did:plc:a", handle="a",
                   embed=ExternalEmbed(uri="https://x.com", title="Title", description="Desc")),
        PostRecord(text="pic", uri="at://p2", author_did="did:plc:b", handle="b", embed=ImagesEmbed()),
    ]

    entries = await writer.archive_posts(posts)

    assert embedder.calls == [["look Desc Title", "pic"]]
    assert entries[0].id == stable_id("at://p1")
    assert entries[0].conversation_id == stable_id("did:plc:a")
    assert entries[0].tags == ["bluesky_post", "has_external_link"]
    assert entries[1].tags == ["bluesky_post", "has_images"]
    assert json.loads(entries[1].content)["text"] == "pic"
    assert len(store.entries) == 2


def test_archival_text_without_embed():
    """Test that plain posts embed their text only."""
    assert archival_text(PostRecord(text="plain")) == "plain"


@pytest.mark.asyncio
async def test_in_memory_store_similarity_and_filters():
    """Test cosine ranking, tag filtering and conversation chains."""
    store = InMemoryMemoryStore()
    await store.put_batch([
        MemoryEntry(id="near", content="n", embedding=[1.0, 0.1], tags=["stm"], conversation_id="c1", timestamp=2),
        MemoryEntry(id="far", content="f", embedding=[0.0, 1.0], tags=["stm"], conversation_id="c1", timestamp=1),
        MemoryEntry(id="post", content="p", embedding=[1.0, 0.0], tags=["bluesky_post"], conversation_id="c2"),
    ])

    similar = await store.get_similar([1.0, 0.0], tags=["stm"], top_k=1)
    assert [e.id for e in similar] == ["near"]

    everything = await store.get_similar([1.0, 0.0], top_k=5)
    assert [e.id for e in everything][:2] == ["post", "near"]

    chain = await store.get_chain("c1")
    assert [e.id for e in chain] == ["far", "near"]

    filtered = await store.get_by_filter(MemoryFilter(tags=["bluesky_post"]))
    assert [e.id for e in filtered] == ["post"]


@pytest.mark.asyncio
async def test_qdrant_store_requests():
    """Test the REST calls the Qdrant store makes."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if request.method == "GET" and path == "/collections/aigis-db":
            return httpx.Response(404, json={"status": {"error": "Not found"}})
        if request.method == "PUT" and path == "/collections/aigis-db":
            return httpx.Response(200, json={"result": True})
        if path == "/collections/aigis-db/points":
            return httpx.Response(200, json={"result": {"status": "completed"}})
        if path == "/collections/aigis-db/points/search":
            return httpx.Response(200, json={"result": [
                {"id": "x", "score": 0.9, "payload": {"id": "x", "content": "hello", "tags": ["stm"], "timestamp": 5}},
            ]})
        return httpx.Response(500)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = QdrantMemoryStore(url="http://qdrant:6333", dimension=4, http_client=client)

    await store.put(MemoryEntry(id="x", content="hello", embedding=[0.1, 0.2, 0.3, 0.4], tags=["stm"]))
    found = await store.get_similar([0.1, 0.2, 0.3, 0.4], tags=["stm"], top_k=2)
    await store.close()

    create = json.loads(requests[1].content)
    assert create == {"vectors": {"size": 4, "distance": "Cosine"}}

    upsert = json.loads(requests[2].content)
    assert upsert["points"][0]["id"] == "x"
    assert "embedding" not in upsert["points"][0]["payload"]

    search = json.loads(requests[3].content)
    assert search["limit"] == 2
    assert search["filter"] == {"must": [{"key": "tags", "match": {"value": "stm"}}]}

    assert [e.content for e in found] == ["hello"]
    assert found[0].timestamp == 5


@pytest.mark.asyncio
async def test_qdrant_store_errors_become_retrieval_errors():
    """Test that HTTP failures raise RetrievalError."""
    client = AsyncMock()
    client.get.side_effect = httpx.ConnectError("refused")

    store = QdrantMemoryStore(http_client=client)

    with pytest.raises(RetrievalError):
        await store.get_similar([0.0], tags=["stm"])


@pytest.mark.asyncio
async def test_qdrant_non_json_body_is_a_retrieval_error():
    """Test that a 200 with a non-JSON body raises RetrievalError."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"result": {"status": "green"}})
        return httpx.Response(200, text="not json")

    store = QdrantMemoryStore(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(RetrievalError):
        await store.put(MemoryEntry(id="x", content="hello", embedding=[0.1], tags=["stm"]))
