"""
Morrow process context.

One explicitly constructed object owns every long-lived collaborator:
knowledge and vector stores, conversation memory and its persistence
task, the tool registry, the audit engine, notifications and provider
adapters. It is created once per process, started by the application
lifespan, and torn down on shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .config import MorrowSettings
from .domain.entities import BrainResult
from .domain.ports import IEmbeddingProvider, IProviderAdapter
from .intent.parser import IntentParser
from .knowledge.store import KnowledgeStore
from .knowledge.vectors import VectorStore
from .memory.conversation import ConversationMemory
from .memory.persistence_worker import MemoryPersistenceWorker
from .orchestrator.brain import BrainConfig, BrainOrchestrator
from .providers.factory import available_providers, create_provider
from .services.audit import AuditEngine
from .services.audit_store import JsonFileAuditStore
from .services.notifications import NotificationService
from .services.places import GooglePlacesService
from .tools.builtin import MorrowToolbox
from .tools.registry import ToolRegistry
from .tools.website import WebsiteIntelFetcher

logger = logging.getLogger(__name__)

FEATURES = (
    "brain",
    "tool_calling",
    "knowledge_search",
    "semantic_search",
    "website_intel",
    "intent_parsing",
    "audits",
    "reports",
    "notifications",
    "places",
    "conversation_memory",
)


@dataclass
class RunStats:
    """Counters updated after every brain run."""

    total_requests: int = 0
    total_tokens: int = 0
    avg_latency_ms: float = 0.0
    failures: int = 0

    def record(self, duration_ms: int, tokens: int) -> None:
        self.total_requests += 1
        self.total_tokens += tokens
        # Running mean
        self.avg_latency_ms += (duration_ms - self.avg_latency_ms) / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "avgLatency": round(self.avg_latency_ms, 1),
            "totalTokens": self.total_tokens,
            "failures": self.failures,
        }


class MorrowContext:
    """Per-process container for the brain and its collaborators.

    Usage:
        context = MorrowContext.create(MorrowSettings.from_env())
        await context.startup()
        result = await context.run_brain("Find local SEO tips")
        await context.shutdown()
    """

    def __init__(
        self,
        settings: MorrowSettings,
        knowledge: KnowledgeStore,
        vectors: VectorStore,
        memory: ConversationMemory,
        persistence: MemoryPersistenceWorker,
        website: WebsiteIntelFetcher,
        audit_store: JsonFileAuditStore,
        audit_engine: AuditEngine,
        notifier: NotificationService,
        places: GooglePlacesService,
        embedder: Optional[IEmbeddingProvider] = None,
        intent_parser: Optional[IntentParser] = None,
    ):
        self.settings = settings
        self.knowledge = knowledge
        self.vectors = vectors
        self.memory = memory
        self.persistence = persistence
        self.website = website
        self.audit_store = audit_store
        self.audit_engine = audit_engine
        self.notifier = notifier
        self.places = places
        self.embedder = embedder
        self.intent_parser = intent_parser or IntentParser()
        self.stats = RunStats()

        self._providers: dict[tuple[str, Optional[str]], IProviderAdapter] = {}
        if embedder is not None and isinstance(embedder, IProviderAdapter):
            self._providers[(embedder.get_name(), None)] = embedder

        self.toolbox = MorrowToolbox(
            knowledge=knowledge,
            website=website,
            vectors=vectors,
            audit_runner=audit_engine,
            audit_store=audit_store,
            notifier=notifier,
            places=places,
        )
        self.tools: ToolRegistry = self.toolbox.build_registry()
        self.brain_config = BrainConfig(
            max_steps=settings.max_steps,
            time_budget_seconds=settings.time_budget_seconds,
        )
        self._started = False

    @classmethod
    def create(cls, settings: MorrowSettings) -> MorrowContext:
        """Wire every collaborator from settings."""
        embedder = cls._create_embedder(settings)
        website = WebsiteIntelFetcher()
        places = GooglePlacesService(api_key=settings.google_places_api_key)
        audit_store = JsonFileAuditStore(settings.audit_dir)
        memory = ConversationMemory(
            max_entries=settings.memory_max_entries,
            path=settings.memory_path,
        )

        context = cls(
            settings=settings,
            knowledge=KnowledgeStore(
                settings.knowledge_dir, exclude=(settings.embeddings_path.name,)
            ),
            vectors=VectorStore(settings.embeddings_path, settings.knowledge_dir, embedder),
            memory=memory,
            persistence=MemoryPersistenceWorker(memory, settings.memory_flush_seconds),
            website=website,
            audit_store=audit_store,
            audit_engine=AuditEngine(store=audit_store, website=website, places=places),
            notifier=NotificationService(
                sendgrid_api_key=settings.sendgrid_api_key,
                sendgrid_from=settings.sendgrid_from,
                twilio_sid=settings.twilio_sid,
                twilio_token=settings.twilio_token,
                twilio_from=settings.twilio_from,
            ),
            places=places,
            embedder=embedder,
        )
        analyzer = context.get_provider()
        if analyzer.is_configured():
            context.audit_engine.analyzer = analyzer
        return context

    @staticmethod
    def _create_embedder(settings: MorrowSettings) -> Optional[IEmbeddingProvider]:
        if settings.openai_api_key:
            return create_provider("openai", settings)
        if settings.provider == "ollama" and settings.ollama_base_url:
            return create_provider("ollama", settings)
        logger.warning("No embedding backend configured; semantic search disabled")
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        """Load knowledge and memory, then start the persistence task."""
        if self._started:
            return
        self.knowledge.load()
        await self.vectors.load()
        await self.memory.load()
        await self.persistence.start()
        self._started = True
        logger.info(
            f"Morrow context started (provider={self.settings.provider}, "
            f"knowledge={self.knowledge.count}, tools={len(self.tools)})"
        )

    async def shutdown(self) -> None:
        """Stop the persistence task (final flush) and close HTTP clients."""
        await self.persistence.stop()
        closers = [self.website, self.places, self.notifier, *self._providers.values()]
        for closer in closers:
            aclose = getattr(closer, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as e:
                logger.warning(f"Error closing {type(closer).__name__}: {e}")
        self._providers.clear()
        self._started = False
        logger.info("Morrow context stopped")

    # ------------------------------------------------------------------
    # Providers & brain
    # ------------------------------------------------------------------

    def get_provider(
        self, name: Optional[str] = None, model: Optional[str] = None
    ) -> IProviderAdapter:
        """Cached provider adapter by variant name and default model.

        Raises:
            ConfigurationError: If the variant is unknown
        """
        key = ((name or self.settings.provider).lower(), model)
        if key not in self._providers:
            self._providers[key] = create_provider(key[0], self.settings, model=model)
        return self._providers[key]

    def brain(self, provider: Optional[IProviderAdapter] = None) -> BrainOrchestrator:
        return BrainOrchestrator(
            provider=provider or self.get_provider(),
            tool_registry=self.tools,
            memory=self.memory,
            config=self.brain_config,
        )

    async def run_brain(
        self,
        prompt: str,
        conversation_id: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        tools_allow: Optional[Iterable[str]] = None,
        max_steps: Optional[int] = None,
        time_budget_seconds: Optional[float] = None,
    ) -> BrainResult:
        """Run the brain loop and record stats.

        Raises:
            ConfigurationError: Unknown or unconfigured provider
            ProviderError: Upstream LLM failure
        """
        adapter = self.get_provider(provider)
        try:
            result = await self.brain(adapter).run(
                prompt,
                conversation_id=conversation_id,
                tools_allow=tools_allow,
                max_steps=max_steps,
                time_budget_seconds=time_budget_seconds,
                model=model,
            )
        except Exception:
            self.stats.failures += 1
            raise
        self.stats.record(result.duration_ms, result.usage.total_tokens)
        return result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def provider_info(self) -> dict[str, Any]:
        adapter = self.get_provider()
        return {"provider": adapter.get_name(), "model": adapter.model_name}

    def stats_snapshot(self) -> dict[str, Any]:
        return {
            **self.stats.to_dict(),
            "knowledgeCount": self.knowledge.count,
            "vectorChunks": self.vectors.count,
            "conversations": self.memory.conversation_count,
            "memoryFlushes": self.persistence.metrics.flushes,
            **self.provider_info(),
        }

    def features(self) -> list[str]:
        enabled = list(FEATURES)
        if not self.vectors.has_embedder:
            enabled.remove("semantic_search")
        if not self.places.is_configured:
            enabled.remove("places")
        return enabled

    def providers(self) -> list[dict[str, Any]]:
        return available_providers(self.settings)
