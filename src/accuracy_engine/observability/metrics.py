"""Metric recording helpers for retrieval, shadow and tuning events."""

from __future__ import annotations

from accuracy_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_retrieval_metrics(
    trace_id: str,
    config_version: int,
    top_scores: list[float],
    num_candidates: int,
    num_accepted: int,
    unique_sources: int,
) -> None:
    logger.info(
        "retrieval_metrics",
        trace_id=trace_id,
        config_version=config_version,
        top_scores=[round(s, 4) for s in top_scores[:5]],
        num_candidates=num_candidates,
        num_accepted=num_accepted,
        unique_sources=unique_sources,
    )


def log_shadow_metrics(
    query_id: str,
    control_version: int,
    candidate_version: int,
    divergence: float,
    control_accepted: int,
    candidate_accepted: int,
) -> None:
    logger.info(
        "shadow_metrics",
        query_id=query_id,
        control_version=control_version,
        candidate_version=candidate_version,
        divergence=round(divergence, 4),
        control_accepted=control_accepted,
        candidate_accepted=candidate_accepted,
    )


def log_tuning_decision(
    action: str,
    version: int | None,
    reason: str,
    **details,
) -> None:
    logger.info(
        "tuning_decision",
        action=action,
        version=version,
        reason=reason,
        **details,
    )


def log_latency(trace_id: str, stage: str, duration_ms: float) -> None:
    logger.info(
        "latency",
        trace_id=trace_id,
        stage=stage,
        duration_ms=round(duration_ms, 2),
    )
