# src/api/facade.py — v2
"""Public API facade: the application container.

Usage:
    from linklore.api.facade import Linklore
    app = Linklore.from_settings()
    handle = await app.enqueue_extract(document_id)
    status = await app.get_processing_status(document_id)

Everything that must be shared inside one process is built once here:
the broker circuit breaker, the fallback pool, the job handler registry
and the debounce state of the disagreement analyzer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from linklore.analysis.disagreements import DisagreementAnalyzer
from linklore.analysis.jobs import AnalysisJobs
from linklore.analysis.pair_consensus import PairConsensusAnalyzer
from linklore.analysis.topic_consensus import TopicConsensusAggregator
from linklore.chat.chat_consensus import ChatConsensusAnalyzer
from linklore.chat.moderation import ChatModerator
from linklore.config.settings import Settings
from linklore.core.similarity import SemanticSimilarity
from linklore.llm.router import AIRouter
from linklore.pipeline.stages.evaluate import EvaluateStage
from linklore.pipeline.stages.extract import ExtractStage
from linklore.pipeline.stages.summarize import SummarizeStage
from linklore.processing.reconciler import Reconciler, ReconcileReport
from linklore.processing.rubrics import QualityThresholds
from linklore.processing.status import StatusStore
from linklore.queue import jobs as job_names
from linklore.queue.adapter import BrokerAdapter
from linklore.queue.circuit_breaker import CircuitBreaker
from linklore.queue.fallback import FallbackExecutor
from linklore.queue.handlers import JobHandlerRegistry
from linklore.queue.jobs import JobQueue
from linklore.queue.worker import JobWorker, WorkerRunStats

if TYPE_CHECKING:
    from linklore.core.models import ProcessingStatus
    from linklore.llm.base_client import BaseLLMClient
    from linklore.llm.embeddings.base_embedder import BaseEmbedder
    from linklore.queue.broker import BaseBroker
    from linklore.queue.models import JobHandle
    from linklore.storage.base_object_store import BaseObjectStore
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class Linklore:
    """Wires stages, analyzers, queue and worker around shared collaborators.

    Args:
        settings: Application settings.
        repository: Persistence backend.
        object_store: Uploaded file bytes.
        llm_client: Provider client behind the AI router.
        broker: Job broker; None runs every job in the fallback pool.
        embedder: Embedding provider for semantic similarity, if any.
    """

    def __init__(
        self,
        settings: Settings,
        repository: BaseRepository,
        object_store: BaseObjectStore,
        llm_client: BaseLLMClient,
        broker: BaseBroker | None = None,
        embedder: BaseEmbedder | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.object_store = object_store
        self.broker = broker

        self.router = AIRouter(
            llm_client,
            cost_cap_cents=settings.ai_cost_cap_cents,
            admin_cost_cap_cents=settings.ai_admin_cost_cap_cents,
            temperature=settings.llm_temperature,
        )
        self.similarity = SemanticSimilarity(embedder=embedder, router=self.router)
        thresholds = QualityThresholds(
            overall=settings.min_quality_score,
            critical=settings.min_critical_score,
            viewpoint=settings.min_viewpoint_score,
        )

        # --- Queue ---
        self.breaker = CircuitBreaker("broker")
        self.adapter = BrokerAdapter(broker, self.breaker) if broker is not None else None
        self.fallback = FallbackExecutor(
            workers=settings.fallback_workers,
            queue_size=settings.fallback_queue_size,
            shutdown_timeout_s=settings.fallback_shutdown_timeout_s,
        )
        self.handlers = JobHandlerRegistry()
        self.jobs = JobQueue(self.adapter, self.fallback, self.handlers, repository, settings)
        self.status = StatusStore(repository)

        # --- Document chain ---
        self.extract_stage = ExtractStage(repository, self.status, self.jobs, object_store)
        self.summarize_stage = SummarizeStage(
            repository, self.status, self.jobs, self.router, settings
        )
        self.evaluate_stage = EvaluateStage(
            repository, self.status, self.jobs, self.router, settings
        )

        # --- Cross-document analyses ---
        self.aggregator = TopicConsensusAggregator(
            repository, history_limit=settings.snapshot_history_limit
        )
        self.pair_consensus = PairConsensusAnalyzer(
            repository, self.router, self.similarity, self.aggregator, thresholds
        )
        self.disagreements = DisagreementAnalyzer(
            repository,
            self.router,
            thresholds,
            batch_size=settings.disagreement_batch_size,
            debounce_s=settings.disagreement_debounce_s,
            text_limit=settings.ai_analyze_text_limit,
        )
        self.analysis_jobs = AnalysisJobs(
            self.status, self.disagreements, self.pair_consensus, self.aggregator
        )

        # --- Chat ---
        self.moderator = ChatModerator(repository, self.router)
        self.chat_consensus = ChatConsensusAnalyzer(repository, self.similarity)

        self.reconciler = Reconciler(
            repository,
            self.status,
            self.jobs,
            stalled_after_s=settings.reconcile_stalled_after_s,
        )
        self._register_handlers()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Linklore:
        """Build the container from settings and the configured backends."""
        from linklore.llm.client_factory import create_llm_client
        from linklore.llm.embeddings.embedder_factory import create_embedder
        from linklore.queue.broker_factory import create_broker
        from linklore.storage.repository_factory import create_object_store, create_repository

        settings = settings or Settings()
        return cls(
            settings=settings,
            repository=create_repository(settings),
            object_store=create_object_store(settings),
            llm_client=create_llm_client(settings),
            broker=create_broker(settings),
            embedder=create_embedder(settings),
        )

    def _register_handlers(self) -> None:
        self.handlers.register(job_names.EXTRACT, self.extract_stage.handle)
        self.handlers.register(job_names.SUMMARIZE, self.summarize_stage.handle)
        self.handlers.register(job_names.EVALUATE, self.evaluate_stage.handle)
        self.handlers.register(
            job_names.ANALYZE_DISAGREEMENTS, self.analysis_jobs.analyze_disagreements
        )
        self.handlers.register(
            job_names.USER_PAIR_ANALYSIS, self.analysis_jobs.user_pair_analysis
        )
        self.handlers.register(job_names.TRACK_CONSENSUS, self.analysis_jobs.track_consensus)
        self.handlers.register(job_names.MODERATE, self._handle_moderate)
        self.handlers.register(job_names.CHAT_ANALYSIS, self._handle_chat_analysis)

    async def _handle_moderate(self, payload: dict[str, Any]) -> Any:
        return await self.moderator.moderate_message(payload["message_id"], payload["room_id"])

    async def _handle_chat_analysis(self, payload: dict[str, Any]) -> Any:
        return await self.chat_consensus.process_chat_analysis(payload["room_id"])

    # --- Enqueue surface ---

    async def enqueue_extract(self, document_id: str) -> JobHandle:
        return await self.jobs.enqueue_extract(document_id)

    async def enqueue_summarize(self, document_id: str) -> JobHandle:
        return await self.jobs.enqueue_summarize(document_id)

    async def enqueue_evaluate(self, document_id: str) -> JobHandle:
        return await self.jobs.enqueue_evaluate(document_id)

    async def enqueue_analyze_disagreements(
        self, topic_id: str, new_document_id: str | None = None
    ) -> JobHandle:
        return await self.jobs.enqueue_analyze_disagreements(topic_id, new_document_id)

    async def enqueue_user_pair_analysis(
        self, topic_id: str, user_id1: str | None = None, user_id2: str | None = None
    ) -> JobHandle:
        return await self.jobs.enqueue_user_pair_analysis(topic_id, user_id1, user_id2)

    async def enqueue_track_consensus(
        self, topic_id: str, document_id: str | None = None
    ) -> JobHandle:
        return await self.jobs.enqueue_track_consensus(topic_id, document_id)

    async def enqueue_moderation(self, message_id: str, room_id: str) -> JobHandle:
        return await self.jobs.enqueue_moderation(message_id, room_id)

    async def enqueue_chat_analysis(self, room_id: str) -> JobHandle:
        return await self.jobs.enqueue_chat_analysis(room_id)

    # --- Status and maintenance ---

    async def get_processing_status(self, document_id: str) -> ProcessingStatus | None:
        return await self.status.get_processing_status(document_id)

    def reset_broker(self) -> None:
        """Close the circuit so the next enqueue tries the broker again."""
        self.breaker.reset()

    def create_worker(self) -> JobWorker:
        if self.broker is None:
            raise RuntimeError("No broker configured; jobs run in the fallback pool")
        return JobWorker(
            self.broker,
            self.handlers,
            concurrency=self.settings.queue_concurrency,
            poll_interval_s=self.settings.worker_poll_interval_s,
        )

    async def run_worker(self) -> WorkerRunStats:
        return await self.create_worker().run_forever()

    async def reconcile(
        self, limit: int = 20, include_failed: bool = False, dry_run: bool = False
    ) -> ReconcileReport:
        return await self.reconciler.run(limit=limit, include_failed=include_failed, dry_run=dry_run)

    async def shutdown(self, timeout: float | None = None) -> None:
        """Drain the fallback pool and close the broker connection."""
        drained = await self.fallback.shutdown(timeout)
        if not drained:
            logger.warning("Fallback pool did not drain before shutdown")
        if self.broker is not None:
            await self.broker.close()
