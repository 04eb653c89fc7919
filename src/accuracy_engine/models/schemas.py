"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    RuleResult,
    ScoringWeights,
    ShadowTestRecord,
    Thresholds,
)


class RetrieveRequest(BaseModel):
    query: str
    subject_id: str | None = None


class ChunkOut(BaseModel):
    chunk_id: str
    source_ref: str
    composite_score: float
    rank: int
    semantic_sim: float
    keyword_overlap: float
    recency_score: float

    @classmethod
    def from_candidate(cls, c: ChunkCandidate) -> ChunkOut:
        return cls(
            chunk_id=c.chunk_id,
            source_ref=c.source_ref,
            composite_score=c.composite_score,
            rank=c.rank,
            semantic_sim=c.signals.semantic_sim,
            keyword_overlap=c.signals.keyword_overlap,
            recency_score=c.signals.recency_score,
        )


class RejectionOut(BaseModel):
    chunk_id: str
    source_ref: str
    composite_score: float | None
    reason: str


class RetrieveResponse(BaseModel):
    query_id: str
    config_version: int
    accepted: list[ChunkOut]
    rejected: list[RejectionOut]

    @classmethod
    def from_result(cls, result: RuleResult) -> RetrieveResponse:
        return cls(
            query_id=result.query_id,
            config_version=result.config_version,
            accepted=[ChunkOut.from_candidate(c) for c in result.accepted],
            rejected=[
                RejectionOut(
                    chunk_id=r.candidate.chunk_id,
                    source_ref=r.candidate.source_ref,
                    composite_score=r.candidate.composite_score,
                    reason=str(r.reason),
                )
                for r in result.rejected
            ],
        )


class FeedbackRequest(BaseModel):
    message_id: str = Field(min_length=1)
    rating: Literal[-1, 0, 1]
    reason: str | None = None


class FeedbackAckOut(BaseModel):
    message_id: str
    recorded: bool
    duplicate: bool


class FeedbackStatsOut(BaseModel):
    window_hours: float | None
    total: int
    positive: int
    neutral: int
    negative: int
    mean_rating: float | None
    helpful_rate: float | None
    reasons: dict[str, int]


class WeightsModel(BaseModel):
    semantic: float = Field(ge=0)
    keyword: float = Field(ge=0)
    recency: float = Field(ge=0)
    diversity_penalty: float = Field(default=0.0, ge=0, le=1)

    def to_domain(self) -> ScoringWeights:
        return ScoringWeights(**self.model_dump())


class ThresholdsModel(BaseModel):
    min_similarity: float = Field(ge=0)
    max_results: int = Field(ge=0)
    max_per_source: int = Field(default=2, ge=1)

    def to_domain(self) -> Thresholds:
        return Thresholds(**self.model_dump())


class ConfigOut(BaseModel):
    version: int
    status: str
    weights: WeightsModel
    thresholds: ThresholdsModel
    created_at: datetime
    status_changed_at: datetime
    activated_at: datetime | None
    parent_version: int | None
    rationale: str

    @classmethod
    def from_config(cls, config: AccuracyConfig) -> ConfigOut:
        return cls(
            version=config.version,
            status=str(config.status),
            weights=WeightsModel(**config.weights.to_dict()),
            thresholds=ThresholdsModel(**config.thresholds.to_dict()),
            created_at=config.created_at,
            status_changed_at=config.status_changed_at,
            activated_at=config.activated_at,
            parent_version=config.parent_version,
            rationale=config.rationale,
        )


class ProposeConfigRequest(BaseModel):
    weights: WeightsModel
    thresholds: ThresholdsModel
    rationale: str = "manual"


class ShadowRecordOut(BaseModel):
    query_id: str
    control_config_version: int
    candidate_config_version: int
    control_accepted: list[str]
    candidate_accepted: list[str]
    divergence_score: float
    timestamp: datetime

    @classmethod
    def from_record(cls, r: ShadowTestRecord) -> ShadowRecordOut:
        return cls(
            query_id=r.query_id,
            control_config_version=r.control_config_version,
            candidate_config_version=r.candidate_config_version,
            control_accepted=r.control_result.accepted_ids,
            candidate_accepted=r.candidate_result.accepted_ids,
            divergence_score=r.divergence_score,
            timestamp=r.timestamp,
        )


class ShadowSummaryOut(BaseModel):
    candidate_version: int
    records: int
    mean_divergence: float
    max_divergence: float
    identical_rate: float


class HealthResponse(BaseModel):
    status: str
    active_version: int
    candidate_version: int | None
    storage_backend: str
    tuning_running: bool
