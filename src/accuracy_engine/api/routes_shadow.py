"""Read-only views over the shadow test log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from accuracy_engine.api.dependencies import get_auto_tuner, get_shadow_log
from accuracy_engine.exceptions import UpstreamUnavailable
from accuracy_engine.models.schemas import ShadowRecordOut, ShadowSummaryOut
from accuracy_engine.protocols.shadow_log import ShadowLog
from accuracy_engine.tuning.auto_tuner import AutoTuner

router = APIRouter(prefix="/shadow")


@router.get("/records", response_model=list[ShadowRecordOut])
async def shadow_records(
    candidate_version: int | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    shadow_log: ShadowLog = Depends(get_shadow_log),
) -> list[ShadowRecordOut]:
    try:
        records = await shadow_log.records(candidate_version=candidate_version, limit=limit)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return [ShadowRecordOut.from_record(r) for r in records]


@router.get("/summary", response_model=list[ShadowSummaryOut])
async def shadow_summary(tuner: AutoTuner = Depends(get_auto_tuner)) -> list[ShadowSummaryOut]:
    try:
        summaries = await tuner.shadow_summary()
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return [
        ShadowSummaryOut(
            candidate_version=s.candidate_version,
            records=s.records,
            mean_divergence=s.mean_divergence,
            max_divergence=s.max_divergence,
            identical_rate=s.identical_rate,
        )
        for s in summaries
    ]
