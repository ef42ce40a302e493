"""
Wiring: builds every collaborator from settings and runs the background tasks.
"""

import asyncio

import structlog

from ..bluesky import BlueskyClient, CursorStore, InboundEvent, JetstreamConsumer, ThreadReconstructor
from ..config import Settings, get_settings
from ..llm import create_llm
from ..memory import BaseMemoryStore, MemoryWriter, OpenAIEmbedder, QdrantMemoryStore
from ..metrics import IngestMetrics
from ..tools import ToolRegistry, create_default_registry
from .context import ContextAssembler
from .core import Orchestrator
from .loop import GenerationLoop
from .pool import WorkerPool
from .prompt import build_system_prompt, load_persona_prompt
from .relevance import RelevanceFilter

logger = structlog.get_logger()


def create_embedder(settings: Settings) -> OpenAIEmbedder:
    return OpenAIEmbedder(
        api_key=settings.embedding_api_key or settings.openai_api_key,
        model=settings.embedding_model,
        base_url=settings.embedding_base_url,
        dimensions=settings.embedding_dim,
    )


def create_store(settings: Settings) -> QdrantMemoryStore:
    return QdrantMemoryStore(
        url=settings.qdrant_url,
        collection=settings.qdrant_collection,
        dimension=settings.embedding_dim,
        api_key=settings.qdrant_api_key,
    )


def create_generation_loop(settings: Settings, registry: ToolRegistry | None = None) -> GenerationLoop:
    registry = registry or create_default_registry(settings)
    persona = load_persona_prompt(settings.prompt_file)
    return GenerationLoop(
        llm=create_llm(settings=settings),
        registry=registry,
        system_prompt=build_system_prompt(persona, registry),
        repeat_limit=settings.tool_repeat_limit,
    )


class AigisService:
    """The running bot: firehose consumer, worker pool and cursor flusher."""

    def __init__(self, settings: Settings | None = None, metrics: IngestMetrics | None = None):
        self.settings = settings or get_settings()
        self.metrics = metrics or IngestMetrics()
        self.queue: asyncio.Queue[InboundEvent] = asyncio.Queue()
        self.client: BlueskyClient | None = None
        self.store: BaseMemoryStore | None = None
        self.pool: WorkerPool | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def build_orchestrator(self, client: BlueskyClient, store: BaseMemoryStore) -> Orchestrator:
        settings = self.settings
        embedder = create_embedder(settings)

        return Orchestrator(
            relevance=RelevanceFilter(client.did, settings.allowed_users_list),
            threads=ThreadReconstructor(client),
            assembler=ContextAssembler(embedder, store, top_k=settings.retrieval_top_k),
            loop=create_generation_loop(settings),
            replier=client,
            writer=MemoryWriter(embedder, store),
            metrics=self.metrics,
            language=settings.reply_language,
            archive_posts=settings.archive_posts,
        )

    async def start(self) -> None:
        settings = self.settings

        self.client = BlueskyClient(settings.atp_user, settings.atp_password, settings.atp_service)
        await self.client.login()

        self.store = create_store(settings)
        orchestrator = self.build_orchestrator(self.client, self.store)

        cursor = CursorStore(settings.cursor_file)
        cursor.load()

        consumer = JetstreamConsumer(settings.jetstream_url, self.queue, cursor)
        self.pool = WorkerPool(self.queue, orchestrator.handle, size=settings.worker_count)

        self._tasks = [
            asyncio.create_task(self.pool.run(), name="worker-pool"),
            asyncio.create_task(consumer.run(), name="jetstream"),
            asyncio.create_task(cursor.run_flusher(settings.cursor_flush_seconds), name="cursor-flusher"),
        ]
        logger.info("Aigis started", did=self.client.did, workers=settings.worker_count)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self.pool:
            await self.pool.close()
        if self.store:
            await self.store.close()
        if self.client:
            await self.client.close()

        logger.info("Aigis stopped")
