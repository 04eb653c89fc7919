"""Operational endpoints for the versioned accuracy config."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from accuracy_engine.api.dependencies import get_auto_tuner
from accuracy_engine.exceptions import (
    AccuracyEngineError,
    ConfigConflict,
    ConfigNotFound,
    InvalidConfig,
    InvalidTransition,
    UpstreamUnavailable,
)
from accuracy_engine.models.domain import ConfigStatus
from accuracy_engine.models.schemas import ConfigOut, ProposeConfigRequest
from accuracy_engine.tuning.auto_tuner import AutoTuner

router = APIRouter(prefix="/config")

STATUS_CODES: dict[type[AccuracyEngineError], int] = {
    InvalidConfig: 422,
    ConfigNotFound: 404,
    ConfigConflict: 409,
    InvalidTransition: 409,
    UpstreamUnavailable: 503,
}


def _http_error(e: AccuracyEngineError) -> HTTPException:
    for exc_type, status in STATUS_CODES.items():
        if isinstance(e, exc_type):
            return HTTPException(status_code=status, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("/active", response_model=ConfigOut)
async def active_config(tuner: AutoTuner = Depends(get_auto_tuner)) -> ConfigOut:
    return ConfigOut.from_config(tuner.get_active_config())


@router.get("", response_model=list[ConfigOut])
async def list_configs(
    status: ConfigStatus | None = None,
    tuner: AutoTuner = Depends(get_auto_tuner),
) -> list[ConfigOut]:
    try:
        configs = await tuner.list_configs(status)
    except AccuracyEngineError as e:
        raise _http_error(e)
    return [ConfigOut.from_config(c) for c in configs]


@router.post("", response_model=ConfigOut, status_code=201)
async def propose_config(
    request: ProposeConfigRequest,
    tuner: AutoTuner = Depends(get_auto_tuner),
) -> ConfigOut:
    try:
        draft = await tuner.propose_config(
            request.weights.to_domain(),
            request.thresholds.to_domain(),
            rationale=request.rationale,
        )
    except AccuracyEngineError as e:
        raise _http_error(e)
    return ConfigOut.from_config(draft)


@router.post("/{version}/enroll", response_model=ConfigOut)
async def enroll_config(version: int, tuner: AutoTuner = Depends(get_auto_tuner)) -> ConfigOut:
    try:
        return ConfigOut.from_config(await tuner.enroll(version))
    except AccuracyEngineError as e:
        raise _http_error(e)


@router.post("/{version}/promote", response_model=ConfigOut)
async def promote_config(version: int, tuner: AutoTuner = Depends(get_auto_tuner)) -> ConfigOut:
    try:
        return ConfigOut.from_config(await tuner.promote(version))
    except AccuracyEngineError as e:
        raise _http_error(e)


@router.post("/{version}/retire", response_model=ConfigOut)
async def retire_config(version: int, tuner: AutoTuner = Depends(get_auto_tuner)) -> ConfigOut:
    try:
        return ConfigOut.from_config(await tuner.retire(version))
    except AccuracyEngineError as e:
        raise _http_error(e)
