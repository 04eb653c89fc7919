"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from accuracy_engine.config.settings import Settings
from accuracy_engine.pipeline.retrieval_service import RetrievalService
from accuracy_engine.protocols.shadow_log import ShadowLog
from accuracy_engine.tuning.auto_tuner import AutoTuner
from accuracy_engine.tuning.scheduler import TuningScheduler
from accuracy_engine.tuning.snapshot import ConfigSnapshotHolder


def get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def get_auto_tuner(request: Request) -> AutoTuner:
    return request.app.state.auto_tuner


def get_snapshot(request: Request) -> ConfigSnapshotHolder:
    return request.app.state.snapshot


def get_shadow_log(request: Request) -> ShadowLog:
    return request.app.state.shadow_log


def get_scheduler(request: Request) -> TuningScheduler | None:
    return request.app.state.scheduler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
