"""
Tests for the cursor store and Jetstream consumer plumbing.
"""

import asyncio

import pytest

from aigis_bot.bluesky.cursor import CursorStore
from aigis_bot.bluesky.jetstream import JetstreamConsumer

from conftest import USER_DID


@pytest.mark.asyncio
async def test_cursor_is_monotonic(tmp_path):
    """Test that older cursors never overwrite newer ones."""
    store = CursorStore(tmp_path / "cursor")

    await store.update(200)
    await store.update(100)

    assert await store.get() == 200


@pytest.mark.asyncio
async def test_cursor_flush_and_load(tmp_path):
    """Test writing the cursor to disk and reading it back."""
    path = tmp_path / "nested" / "cursor"
    store = CursorStore(path)

    assert await store.flush() is None
    await store.update(1725911162329308)
    assert await store.flush() == 1725911162329308

    assert CursorStore(path).load() == 1725911162329308


def test_cursor_load_missing_or_malformed(tmp_path):
    """Test that a missing or garbage cursor file is ignored."""
    assert CursorStore(tmp_path / "missing").load() is None

    bad = tmp_path / "bad"
    bad.write_text("not a number")
    assert CursorStore(bad).load() is None


@pytest.mark.asyncio
async def test_consumer_url_and_payload_handling(tmp_path):
    """Test URL building and event queueing."""
    queue: asyncio.Queue = asyncio.Queue()
    cursor = CursorStore(tmp_path / "cursor")
    consumer = JetstreamConsumer("wss://jetstream.example/subscribe", queue, cursor)

    assert await consumer.build_url() == "wss://jetstream.example/subscribe?wantedCollections=app.bsky.feed.post"

    await consumer.handle_payload({"kind": "identity", "did": USER_DID, "time_us": 10})
    event = await consumer.handle_payload({
        "did": USER_DID,
        "time_us": 20,
        "kind": "commit",
        "commit": {
            "operation": "create",
            "collection": "app.bsky.feed.post",
            "rkey": "abc",
            "cid": "bafy",
            "record": {"text": "hi"},
        },
    })

    assert event is not None
    assert queue.qsize() == 1
    assert await cursor.get() == 20
    assert (await consumer.build_url()).endswith("&cursor=20")
