"""
Thread reconstruction: turn a post's parent chain into an ordered conversation.
"""

from dataclasses import dataclass
from typing import Any, Iterator

import structlog

from ..errors import DeserializationError, ThreadFetchError
from .client import MAX_THREAD_DEPTH, BlueskyClient
from .records import PostRecord, post_from_view

logger = structlog.get_logger()

THREAD_VIEW_POST = "app.bsky.feed.defs#threadViewPost"


def _is_thread_view(node: Any) -> bool:
    return isinstance(node, dict) and node.get("$type") == THREAD_VIEW_POST


@dataclass
class ThreadNode:
    """One post in the parent chain, linked towards the root."""

    post: PostRecord | None
    parent: "ThreadNode | None" = None

    @classmethod
    def from_view(cls, view: dict[str, Any]) -> "ThreadNode":
        """Build the chain from a thread view without recursing.

        Parents that are missing, not found, blocked or of an unknown type end
        the chain. Posts that fail to decode are kept as empty nodes so the
        chain stays intact, and are dropped when iterating.
        """
        head = cls(post=_decode(view))
        node = head
        parent = view.get("parent")
        while _is_thread_view(parent):
            node.parent = cls(post=_decode(parent))
            node = node.parent
            parent = parent.get("parent")
        return head

    def walk_up(self) -> Iterator["ThreadNode"]:
        node: ThreadNode | None = self
        while node is not None:
            yield node
            node = node.parent

    def chronological(self) -> list[PostRecord]:
        """Posts from the root down to this node, oldest first."""
        posts = [node.post for node in self.walk_up() if node.post is not None]
        posts.reverse()
        return posts


def _decode(view: dict[str, Any]) -> PostRecord | None:
    try:
        return post_from_view(view.get("post"))
    except DeserializationError as e:
        logger.warning("Skipping undecodable post in thread", error=str(e))
        return None


class ThreadReconstructor:
    """Fetches a thread and flattens its parent chain."""

    def __init__(self, client: BlueskyClient, depth: int = MAX_THREAD_DEPTH):
        self.client = client
        self.depth = depth

    async def reconstruct(self, uri: str) -> list[PostRecord]:
        """Return the conversation leading up to ``uri``, oldest first.

        Raises:
            ThreadFetchError: if the fetch fails or the response is not a
                thread view.
        """
        data = await self.client.get_thread(uri, self.depth)

        thread = data.get("thread") if isinstance(data, dict) else None
        if not _is_thread_view(thread):
            kind = thread.get("$type") if isinstance(thread, dict) else type(thread).__name__
            raise ThreadFetchError(f"Unexpected thread type for {uri}: {kind}")

        posts = ThreadNode.from_view(thread).chronological()
        logger.debug("Reconstructed thread", uri=uri, length=len(posts))
        return posts
