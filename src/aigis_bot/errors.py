"""Shared error types for aigis-bot.

Anything raised out of a turn aborts that event only and is counted as an
ingest error. Tool failures never leave the registry; they are handed back
to the model as text.
"""


class AigisError(Exception):
    """Base error for aigis-bot."""


class DeserializationError(AigisError):
    """Inbound record could not be decoded into a post."""


class ThreadFetchError(AigisError):
    """Thread lookup failed or returned something that isn't a thread view."""


class EmbeddingError(AigisError):
    """Embedding backend call failed."""


class RetrievalError(AigisError):
    """Vector store query or write failed."""


class GenerationError(AigisError):
    """Model gateway call failed."""


class ReplyError(AigisError):
    """Posting the reply failed."""


class ToolNotFound(AigisError):
    """Tool name requested by the model isn't registered."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class ToolExecutionError(AigisError):
    """Tool raised while executing."""
