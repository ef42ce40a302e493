"""
Vector memory stores.

Two implementations share one interface:
- QdrantMemoryStore talks to Qdrant's REST API over httpx
- InMemoryMemoryStore keeps everything in a dict (tests, the chat command)
"""

import asyncio
import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx
import structlog

from ..errors import RetrievalError

logger = structlog.get_logger()

SHORT_TERM_TAG = "stm"
POST_TAG = "bluesky_post"


@dataclass
class MemoryEntry:
    """A single stored memory. Never modified after it is written."""

    id: str
    content: str
    embedding: list[float]
    tags: list[str] = field(default_factory=list)
    role: str = "user"
    entry_type: str = POST_TAG
    conversation_id: str = ""
    timestamp: int = 0

    def payload(self) -> dict[str, Any]:
        """Everything but the vector."""
        data = asdict(self)
        data.pop("embedding")
        return data

    @classmethod
    def from_payload(cls, payload: dict[str, Any], embedding: list[float] | None = None) -> "MemoryEntry":
        return cls(
            id=str(payload.get("id", "")),
            content=payload.get("content", ""),
            embedding=list(embedding or []),
            tags=list(payload.get("tags") or []),
            role=payload.get("role", "user"),
            entry_type=payload.get("entry_type", POST_TAG),
            conversation_id=payload.get("conversation_id", ""),
            timestamp=int(payload.get("timestamp", 0)),
        )


@dataclass
class MemoryFilter:
    """Exact-match filter; unset fields don't constrain. All tags must be present."""

    tags: list[str] = field(default_factory=list)
    conversation_id: str | None = None
    entry_type: str | None = None
    role: str | None = None

    def matches(self, entry: MemoryEntry) -> bool:
        if any(tag not in entry.tags for tag in self.tags):
            return False
        if self.conversation_id is not None and entry.conversation_id != self.conversation_id:
            return False
        if self.entry_type is not None and entry.entry_type != self.entry_type:
            return False
        if self.role is not None and entry.role != self.role:
            return False
        return True


class BaseMemoryStore(ABC):
    """Interface every memory backend implements.

    All methods raise RetrievalError when the backend fails.
    """

    @abstractmethod
    async def put(self, entry: MemoryEntry) -> None:
        """Insert or replace one entry (keyed by id)."""
        pass

    @abstractmethod
    async def put_batch(self, entries: list[MemoryEntry]) -> None:
        pass

    @abstractmethod
    async def get_similar(
        self,
        vector: list[float],
        tags: list[str] | None = None,
        top_k: int = 2,
    ) -> list[MemoryEntry]:
        """Nearest entries to ``vector`` carrying all ``tags``, best first."""
        pass

    @abstractmethod
    async def get_by_filter(self, filter: MemoryFilter, limit: int = 100) -> list[MemoryEntry]:
        pass

    async def get_chain(self, conversation_id: str, limit: int = 100) -> list[MemoryEntry]:
        """Entries of one conversation, oldest first."""
        entries = await self.get_by_filter(MemoryFilter(conversation_id=conversation_id), limit=limit)
        return sorted(entries, key=lambda e: e.timestamp)

    async def close(self) -> None:
        pass


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryMemoryStore(BaseMemoryStore):
    """Process-local store with brute-force cosine search."""

    def __init__(self):
        self.entries: dict[str, MemoryEntry] = {}
        self._lock = asyncio.Lock()

    async def put(self, entry: MemoryEntry) -> None:
        async with self._lock:
            self.entries[entry.id] = entry

    async def put_batch(self, entries: list[MemoryEntry]) -> None:
        async with self._lock:
            for entry in entries:
                self.entries[entry.id] = entry

    async def get_similar(
        self,
        vector: list[float],
        tags: list[str] | None = None,
        top_k: int = 2,
    ) -> list[MemoryEntry]:
        wanted = MemoryFilter(tags=list(tags or []))
        async with self._lock:
            candidates = [e for e in self.entries.values() if wanted.matches(e)]

        candidates.sort(key=lambda e: cosine_similarity(vector, e.embedding), reverse=True)
        return candidates[:top_k]

    async def get_by_filter(self, filter: MemoryFilter, limit: int = 100) -> list[MemoryEntry]:
        async with self._lock:
            return [e for e in self.entries.values() if filter.matches(e)][:limit]


class QdrantMemoryStore(BaseMemoryStore):
    """Memory kept in a Qdrant collection, accessed over REST."""

    def __init__(
        self,
        url: str = "http://localhost:6333",
        collection: str = "aigis-db",
        dimension: int = 1536,
        api_key: str = "",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.url = url.rstrip("/")
        self.collection = collection
        self.dimension = dimension
        headers = {"api-key": api_key} if api_key else None
        self.client = http_client or httpx.AsyncClient(timeout=20.0, headers=headers)
        self._ready = False

    @property
    def _collection_url(self) -> str:
        return f"{self.url}/collections/{self.collection}"

    async def _call(self, method: str, path: str = "", **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self.client.request(method, self._collection_url + path, **kwargs)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Qdrant request failed", method=method, path=path or "/", error=str(e))
            raise RetrievalError(f"Qdrant {method} {path or '/'} failed: {e}") from e

    async def ensure_collection(self) -> None:
        """Create the collection (cosine distance) if it doesn't exist."""
        if self._ready:
            return

        try:
            response = await self.client.get(self._collection_url)
        except httpx.HTTPError as e:
            raise RetrievalError(f"Qdrant unreachable: {e}") from e

        if response.status_code == 404:
            logger.info("Creating Qdrant collection", collection=self.collection, size=self.dimension)
            await self._call(
                "PUT",
                json={"vectors": {"size": self.dimension, "distance": "Cosine"}},
            )
        elif response.is_error:
            raise RetrievalError(f"Qdrant collection check failed: HTTP {response.status_code}")

        self._ready = True

    @staticmethod
    def _to_point(entry: MemoryEntry) -> dict[str, Any]:
        return {"id": entry.id, "vector": entry.embedding, "payload": entry.payload()}

    @staticmethod
    def _filter_body(filter: MemoryFilter) -> dict[str, Any] | None:
        must: list[dict[str, Any]] = [
            {"key": "tags", "match": {"value": tag}} for tag in filter.tags
        ]
        for key in ("conversation_id", "entry_type", "role"):
            value = getattr(filter, key)
            if value is not None:
                must.append({"key": key, "match": {"value": value}})
        return {"must": must} if must else None

    async def put(self, entry: MemoryEntry) -> None:
        await self.put_batch([entry])

    async def put_batch(self, entries: list[MemoryEntry]) -> None:
        if not entries:
            return
        await self.ensure_collection()
        await self._call(
            "PUT",
            "/points",
            params={"wait": "true"},
            json={"points": [self._to_point(e) for e in entries]},
        )
        logger.debug("Stored memories", count=len(entries))

    async def get_similar(
        self,
        vector: list[float],
        tags: list[str] | None = None,
        top_k: int = 2,
    ) -> list[MemoryEntry]:
        await self.ensure_collection()

        body: dict[str, Any] = {"vector": vector, "limit": top_k, "with_payload": True}
        query_filter = self._filter_body(MemoryFilter(tags=list(tags or [])))
        if query_filter:
            body["filter"] = query_filter

        data = await self._call("POST", "/points/search", json=body)
        return [MemoryEntry.from_payload(hit.get("payload") or {}) for hit in data.get("result", [])]

    async def get_by_filter(self, filter: MemoryFilter, limit: int = 100) -> list[MemoryEntry]:
        await self.ensure_collection()

        body: dict[str, Any] = {"limit": limit, "with_payload": True, "with_vector": True}
        query_filter = self._filter_body(filter)
        if query_filter:
            body["filter"] = query_filter

        data = await self._call("POST", "/points/scroll", json=body)
        points = (data.get("result") or {}).get("points", [])
        return [
            MemoryEntry.from_payload(p.get("payload") or {}, p.get("vector") or [])
            for p in points
        ]

    async def close(self) -> None:
        await self.client.aclose()
