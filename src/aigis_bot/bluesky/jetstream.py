"""
Jetstream firehose consumer.

Reads JSON commit events over a WebSocket, keeps the cursor current and
hands post creations to the worker queue.
"""

import asyncio
from typing import Any
from urllib.parse import urlencode

import aiohttp
import structlog

from .cursor import CursorStore
from .records import POST_COLLECTION, InboundEvent

logger = structlog.get_logger()


def parse_jetstream_event(
    payload: Any,
    collections: tuple[str, ...] = (POST_COLLECTION,),
) -> InboundEvent | None:
    """Turn a Jetstream message into an InboundEvent.

    Only ``create`` commits in a wanted collection that carry both a record
    and a CID produce an event; everything else yields None.
    """
    if not isinstance(payload, dict) or payload.get("kind") != "commit":
        return None

    commit = payload.get("commit")
    if not isinstance(commit, dict) or commit.get("operation") != "create":
        return None
    if commit.get("collection") not in collections:
        return None

    record = commit.get("record")
    cid = commit.get("cid")
    if not isinstance(record, dict) or not isinstance(cid, str):
        return None

    return InboundEvent(
        author_id=str(payload.get("did", "")),
        collection=commit["collection"],
        record_key=str(commit.get("rkey", "")),
        content_id=cid,
        record=record,
        time_us=payload.get("time_us"),
    )


class JetstreamConsumer:
    """Feeds an asyncio queue from a Jetstream subscription."""

    def __init__(
        self,
        url: str,
        queue: "asyncio.Queue[InboundEvent]",
        cursor: CursorStore,
        collections: tuple[str, ...] = (POST_COLLECTION,),
        reconnect_delay: float = 5.0,
    ):
        self.url = url
        self.queue = queue
        self.cursor = cursor
        self.collections = collections
        self.reconnect_delay = reconnect_delay

    async def build_url(self) -> str:
        params: list[tuple[str, str]] = [("wantedCollections", c) for c in self.collections]
        cursor = await self.cursor.get()
        if cursor is not None:
            params.append(("cursor", str(cursor)))
        return f"{self.url}?{urlencode(params)}"

    async def handle_payload(self, payload: Any) -> InboundEvent | None:
        if isinstance(payload, dict) and isinstance(payload.get("time_us"), int):
            await self.cursor.update(payload["time_us"])

        event = parse_jetstream_event(payload, self.collections)
        if event is not None:
            await self.queue.put(event)
        return event

    async def run(self) -> None:
        """Consume forever, reconnecting after a fixed delay on any drop."""
        async with aiohttp.ClientSession() as session:
            while True:
                url = await self.build_url()
                try:
                    async with session.ws_connect(url, heartbeat=30.0) as ws:
                        logger.info("Connected to Jetstream", url=url)
                        async for msg in ws:
                            if msg.type == aiohttp.WSMsgType.TEXT:
                                try:
                                    payload = msg.json()
                                except ValueError:
                                    logger.warning("Dropping non-JSON Jetstream message")
                                    continue
                                await self.handle_payload(payload)
                            elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                                break
                except aiohttp.ClientError as e:
                    logger.warning("Jetstream connection error", error=str(e))

                logger.info("Reconnecting to Jetstream", delay=self.reconnect_delay)
                await asyncio.sleep(self.reconnect_delay)
