"""
Shared builders and fakes for the test suite.
"""

import math

import pytest

from aigis_bot.bluesky.records import InboundEvent, POST_COLLECTION, StrongRef
from aigis_bot.llm.base import BaseLLM, LLMMessage
from aigis_bot.memory.embedder import BaseEmbedder

AGENT_DID = "did:plc:aigisbot"
USER_DID = "did:plc:someuser"


def post_uri(did: str, rkey: str) -> str:
    return f"at://{did}/{POST_COLLECTION}/{rkey}"


def post_view(uri: str, text: str, did: str = USER_DID, handle: str = "someone.bsky.social",
              display_name: str | None = "Someone", record_extra: dict | None = None,
              indexed_at: str = "2025-06-01T12:00:01Z") -> dict:
    """An app.bsky.feed.defs#postView."""
    record = {"$type": POST_COLLECTION, "text": text, "createdAt": "2025-06-01T12:00:00Z"}
    record.update(record_extra or {})
    author = {"did": did, "handle": handle}
    if display_name:
        author["displayName"] = display_name
    return {
        "uri": uri,
        "cid": f"cid-{uri.rsplit('/', 1)[-1]}",
        "author": author,
        "record": record,
        "indexedAt": indexed_at,
    }


def thread_view(post: dict, parent: dict | None = None) -> dict:
    view = {"$type": "app.bsky.feed.defs#threadViewPost", "post": post}
    if parent is not None:
        view["parent"] = parent
    return view


def mention_facet(did: str) -> dict:
    return {
        "index": {"byteStart": 0, "byteEnd": 6},
        "features": [{"$type": "app.bsky.richtext.facet#mention", "did": did}],
    }


def make_event(text: str, rkey: str = "3kpost", did: str = USER_DID, **record_extra) -> InboundEvent:
    record = {"$type": POST_COLLECTION, "text": text, "createdAt": "2025-06-01T12:00:00Z"}
    record.update(record_extra)
    return InboundEvent(
        author_id=did,
        collection=POST_COLLECTION,
        record_key=rkey,
        content_id=f"cid-{rkey}",
        record=record,
        time_us=1_700_000_000_000_000,
    )


class FakeEmbedder(BaseEmbedder):
    """Deterministic bag-of-characters vectors; records every call."""

    def __init__(self, dim: int = 16):
        self.dim = dim
        self.calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        for ch in text:
            vec[ord(ch) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


class ScriptedLLM(BaseLLM):
    """Returns canned responses in order and keeps what it was sent."""

    def __init__(self, responses: list[str]):
        super().__init__(api_key="test", model="scripted")
        self.responses = list(responses)
        self.requests: list[list[LLMMessage]] = []
        self.system_prompts: list[str | None] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def generate(self, messages, system_prompt=None) -> str:
        self.requests.append(list(messages))
        self.system_prompts.append(system_prompt)
        return self.responses.pop(0)

    async def stream(self, messages, system_prompt=None):
        text = await self.generate(messages, system_prompt)
        for i in range(0, len(text), 4):
            yield text[i:i + 4]


class FakeBluesky:
    """Thread source and replier backed by a dict of thread responses."""

    def __init__(self, threads: dict[str, dict] | None = None):
        self.threads = threads or {}
        self.replies: list[tuple] = []

    async def get_thread(self, uri: str, depth: int = 1000) -> dict:
        return {"thread": self.threads[uri]}

    async def create_reply(self, reply, text, language="en") -> StrongRef:
        self.replies.append((reply, text, language))
        return StrongRef(uri=post_uri(AGENT_DID, f"reply{len(self.replies)}"), cid="cid-reply")


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()
