"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from accuracy_engine.api.middleware import RequestTimingMiddleware
from accuracy_engine.api.routes_config import router as config_router
from accuracy_engine.api.routes_feedback import router as feedback_router
from accuracy_engine.api.routes_health import router as health_router
from accuracy_engine.api.routes_retrieve import router as retrieve_router
from accuracy_engine.api.routes_shadow import router as shadow_router
from accuracy_engine.config.settings import Settings
from accuracy_engine.exceptions import ConfigurationError
from accuracy_engine.models.domain import ScoringWeights, Thresholds
from accuracy_engine.observability.logger import get_logger, setup_logging
from accuracy_engine.pipeline.retrieval_service import RetrievalService
from accuracy_engine.protocols.chunk_store import ChunkStore
from accuracy_engine.query.processor import QueryProcessor
from accuracy_engine.ranking.rule_engine import RuleEngine
from accuracy_engine.scoring.chunk_scorer import ChunkScorer
from accuracy_engine.shadow.dispatcher import ShadowDispatcher
from accuracy_engine.shadow.runner import ShadowTestRunner
from accuracy_engine.storage.memory import (
    InMemoryChunkStore,
    InMemoryConfigStore,
    InMemoryFeedbackSink,
    InMemoryShadowLog,
    InMemoryTraceStore,
)
from accuracy_engine.storage.sqlite_config_store import SQLiteConfigStore
from accuracy_engine.storage.sqlite_feedback_store import SQLiteFeedbackSink
from accuracy_engine.storage.sqlite_shadow_store import SQLiteShadowLog
from accuracy_engine.storage.sqlite_trace_store import SQLiteTraceStore
from accuracy_engine.tuning.auto_tuner import AutoTuner
from accuracy_engine.tuning.scheduler import TuningScheduler
from accuracy_engine.tuning.snapshot import ConfigSnapshotHolder

logger = get_logger("app")


async def build_stores(settings: Settings):
    """Config store, feedback sink, shadow log and trace store for the configured backend."""
    if settings.storage_backend == "memory":
        return InMemoryConfigStore(), InMemoryFeedbackSink(), InMemoryShadowLog(), InMemoryTraceStore()
    if settings.storage_backend != "sqlite":
        raise ConfigurationError(f"unknown storage backend {settings.storage_backend!r}")

    for path in [settings.sqlite_config_db_path, settings.sqlite_log_db_path]:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    config_store = SQLiteConfigStore(settings.sqlite_config_db_path)
    await config_store.initialize()
    feedback_sink = SQLiteFeedbackSink(settings.sqlite_log_db_path)
    await feedback_sink.initialize()
    # The log tables share one database; initialising once creates all of them.
    return (
        config_store,
        feedback_sink,
        SQLiteShadowLog(settings.sqlite_log_db_path),
        SQLiteTraceStore(settings.sqlite_log_db_path),
    )


def default_chunk_store(settings: Settings) -> ChunkStore:
    if settings.chunk_fixture_path:
        return InMemoryChunkStore.from_fixture(settings.chunk_fixture_path)
    logger.warning("chunk_store_empty", hint="set ACCURACY_CHUNK_FIXTURE_PATH or inject a ChunkStore")
    return InMemoryChunkStore()


def create_app(settings: Settings | None = None, chunk_store: ChunkStore | None = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()

        config_store, feedback_sink, shadow_log, trace_store = await build_stores(settings)
        await config_store.bootstrap(
            ScoringWeights(
                semantic=settings.default_w_semantic,
                keyword=settings.default_w_keyword,
                recency=settings.default_w_recency,
                diversity_penalty=settings.default_diversity_penalty,
            ),
            Thresholds(
                min_similarity=settings.default_min_similarity,
                max_results=settings.default_max_results,
                max_per_source=settings.default_max_per_source,
            ),
        )
        snapshot = await ConfigSnapshotHolder.load(config_store)

        scorer = ChunkScorer()
        rule_engine = RuleEngine()
        dispatcher = ShadowDispatcher(
            ShadowTestRunner(scorer, rule_engine, top_k=settings.shadow_top_k),
            shadow_log,
            settings,
        )
        retrieval_service = RetrievalService(
            processor=QueryProcessor(max_query_length=settings.max_query_length),
            chunk_store=chunk_store or default_chunk_store(settings),
            scorer=scorer,
            rule_engine=rule_engine,
            snapshot=snapshot,
            dispatcher=dispatcher,
            trace_store=trace_store,
            settings=settings,
        )
        auto_tuner = AutoTuner(
            config_store=config_store,
            feedback_sink=feedback_sink,
            shadow_log=shadow_log,
            trace_store=trace_store,
            snapshot=snapshot,
            settings=settings,
        )

        scheduler = None
        if settings.tuning_enabled:
            scheduler = TuningScheduler(
                auto_tuner,
                interval_seconds=settings.tuning_interval_seconds,
                feedback_trigger_count=settings.feedback_trigger_count,
            )
            auto_tuner.add_feedback_listener(scheduler.notify_feedback)
            scheduler.start()

        app.state.settings = settings
        app.state.snapshot = snapshot
        app.state.retrieval_service = retrieval_service
        app.state.auto_tuner = auto_tuner
        app.state.shadow_log = shadow_log
        app.state.scheduler = scheduler

        current = snapshot.current()
        logger.info(
            "startup_complete",
            backend=settings.storage_backend,
            active_version=current.active.version,
            candidate_version=current.candidate.version if current.candidate else None,
            tuning=settings.tuning_enabled,
        )

        yield

        if scheduler is not None:
            await scheduler.stop()
        await retrieval_service.drain()
        logger.info("shutdown_complete")

    app = FastAPI(
        title="Retrieval Accuracy Engine",
        version="1.0.0",
        description="Config-driven chunk scoring with shadow-tested auto-tuning",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(retrieve_router, tags=["retrieve"])
    app.include_router(feedback_router, tags=["feedback"])
    app.include_router(config_router, tags=["config"])
    app.include_router(shadow_router, tags=["shadow"])
    return app
