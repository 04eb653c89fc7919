"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from accuracy_engine.api.dependencies import get_scheduler, get_settings, get_snapshot
from accuracy_engine.config.settings import Settings
from accuracy_engine.models.schemas import HealthResponse
from accuracy_engine.tuning.scheduler import TuningScheduler
from accuracy_engine.tuning.snapshot import ConfigSnapshotHolder

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    snapshot: ConfigSnapshotHolder = Depends(get_snapshot),
    scheduler: TuningScheduler | None = Depends(get_scheduler),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    current = snapshot.current()
    return HealthResponse(
        status="ok",
        active_version=current.active.version,
        candidate_version=current.candidate.version if current.candidate else None,
        storage_backend=settings.storage_backend,
        tuning_running=scheduler is not None and scheduler.running,
    )
