"""Vector memory for aigis-bot."""

from .embedder import BaseEmbedder, OpenAIEmbedder
from .store import (
    BaseMemoryStore,
    InMemoryMemoryStore,
    MemoryEntry,
    MemoryFilter,
    QdrantMemoryStore,
)
from .writer import ChatLog, Exchange, MemoryWriter, stable_id

__all__ = [
    "BaseEmbedder",
    "OpenAIEmbedder",
    "BaseMemoryStore",
    "InMemoryMemoryStore",
    "MemoryEntry",
    "MemoryFilter",
    "QdrantMemoryStore",
    "ChatLog",
    "Exchange",
    "MemoryWriter",
    "stable_id",
]
