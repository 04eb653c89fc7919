"""Feedback ingestion and statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from accuracy_engine.api.dependencies import get_auto_tuner
from accuracy_engine.exceptions import InvalidFeedback, UpstreamUnavailable
from accuracy_engine.models.schemas import FeedbackAckOut, FeedbackRequest, FeedbackStatsOut
from accuracy_engine.tuning.auto_tuner import AutoTuner

router = APIRouter(prefix="/feedback")


@router.post("", response_model=FeedbackAckOut)
async def record_feedback(
    request: FeedbackRequest,
    tuner: AutoTuner = Depends(get_auto_tuner),
) -> FeedbackAckOut:
    try:
        ack = await tuner.record_feedback(request.message_id, request.rating, request.reason)
    except InvalidFeedback as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return FeedbackAckOut(message_id=ack.message_id, recorded=ack.recorded, duplicate=ack.duplicate)


@router.get("/stats", response_model=FeedbackStatsOut)
async def feedback_stats(
    window_hours: float | None = Query(default=None, gt=0),
    tuner: AutoTuner = Depends(get_auto_tuner),
) -> FeedbackStatsOut:
    try:
        agg = await tuner.feedback_aggregate(window_hours)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return FeedbackStatsOut(
        window_hours=window_hours,
        total=agg.total,
        positive=agg.positive,
        neutral=agg.neutral,
        negative=agg.negative,
        mean_rating=agg.mean_rating,
        helpful_rate=agg.helpful_rate,
        reasons=agg.reasons,
    )
