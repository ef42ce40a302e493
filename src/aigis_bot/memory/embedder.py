"""
Text embedding backends.
"""

from abc import ABC, abstractmethod

import openai
import structlog

from ..errors import EmbeddingError

logger = structlog.get_logger()


class BaseEmbedder(ABC):
    """Turns a batch of texts into vectors, one per text, in input order."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        pass


class OpenAIEmbedder(BaseEmbedder):
    """Embeddings via the OpenAI (or any compatible) embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        dimensions: int | None = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in one request.

        Raises:
            EmbeddingError: on API failure or a response of the wrong size.
        """
        if not texts:
            return []

        kwargs = {"model": self.model, "input": texts}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions

        try:
            response = await self.client.embeddings.create(**kwargs)
        except openai.APIError as e:
            logger.error("Embedding request failed", model=self.model, error=str(e))
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if len(response.data) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(response.data)}"
            )

        # The API documents `index`; don't rely on response order
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]
