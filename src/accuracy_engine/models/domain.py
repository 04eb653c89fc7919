"""Core domain objects used throughout the system."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum

from accuracy_engine.exceptions import InvalidConfig


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigStatus(StrEnum):
    DRAFT = "DRAFT"
    SHADOW = "SHADOW"
    ACTIVE = "ACTIVE"
    RETIRED = "RETIRED"


class Intent(StrEnum):
    DEFINITION = "definition"
    COMPARISON = "comparison"
    PROCEDURE = "procedure"
    NAVIGATIONAL = "navigational"
    FACTUAL = "factual"
    GENERAL = "general"


class RejectionReason(StrEnum):
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    DIVERSITY_CAP = "DIVERSITY_CAP"
    TRUNCATED = "TRUNCATED"


@dataclass(frozen=True)
class ScoringWeights:
    semantic: float
    keyword: float
    recency: float
    diversity_penalty: float = 0.0

    def __post_init__(self) -> None:
        for name in ("semantic", "keyword", "recency", "diversity_penalty"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidConfig(f"weight {name} must be a finite non-negative number")
        if self.diversity_penalty > 1:
            raise InvalidConfig("diversity_penalty must be <= 1")

    def signal_vector(self) -> tuple[float, float, float]:
        return (self.semantic, self.keyword, self.recency)

    def to_dict(self) -> dict:
        return {
            "semantic": self.semantic,
            "keyword": self.keyword,
            "recency": self.recency,
            "diversity_penalty": self.diversity_penalty,
        }


@dataclass(frozen=True)
class Thresholds:
    min_similarity: float
    max_results: int
    max_per_source: int = 2

    def __post_init__(self) -> None:
        if not math.isfinite(self.min_similarity) or self.min_similarity < 0:
            raise InvalidConfig("min_similarity must be a finite non-negative number")
        if self.max_results < 0:
            raise InvalidConfig("max_results must be >= 0")
        if self.max_per_source < 1:
            raise InvalidConfig("max_per_source must be >= 1")

    def to_dict(self) -> dict:
        return {
            "min_similarity": self.min_similarity,
            "max_results": self.max_results,
            "max_per_source": self.max_per_source,
        }


@dataclass(frozen=True)
class AccuracyConfig:
    """Versioned, immutable bundle of scoring weights and thresholds.

    A status transition yields a replacement record with the same version;
    weights and thresholds never change after creation.
    """

    version: int
    weights: ScoringWeights
    thresholds: Thresholds
    status: ConfigStatus
    created_at: datetime = field(default_factory=utcnow)
    status_changed_at: datetime = field(default_factory=utcnow)
    activated_at: datetime | None = None
    parent_version: int | None = None
    rationale: str = ""

    def with_status(self, status: ConfigStatus, at: datetime) -> AccuracyConfig:
        activated_at = at if status == ConfigStatus.ACTIVE else self.activated_at
        return replace(self, status=status, status_changed_at=at, activated_at=activated_at)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "weights": self.weights.to_dict(),
            "thresholds": self.thresholds.to_dict(),
            "status": str(self.status),
            "created_at": self.created_at.isoformat(),
            "status_changed_at": self.status_changed_at.isoformat(),
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "parent_version": self.parent_version,
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class ProcessedQuery:
    raw_text: str
    normalized_tokens: tuple[str, ...]
    expanded_terms: frozenset[str]
    intent: Intent


@dataclass(frozen=True)
class RawSignals:
    """Per-chunk similarity signals, pre-normalised to [0, 1] by their providers."""

    semantic_sim: float
    keyword_overlap: float
    recency_score: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.semantic_sim, self.keyword_overlap, self.recency_score)


@dataclass(frozen=True)
class ChunkCandidate:
    chunk_id: str
    source_ref: str
    signals: RawSignals
    composite_score: float | None = None
    rank: int | None = None

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "source_ref": self.source_ref,
            "signals": {
                "semantic_sim": self.signals.semantic_sim,
                "keyword_overlap": self.signals.keyword_overlap,
                "recency_score": self.signals.recency_score,
            },
            "composite_score": self.composite_score,
            "rank": self.rank,
        }


@dataclass(frozen=True)
class Rejection:
    candidate: ChunkCandidate
    reason: RejectionReason


@dataclass(frozen=True)
class RuleResult:
    accepted: tuple[ChunkCandidate, ...]
    rejected: tuple[Rejection, ...]
    config_version: int
    query_id: str = ""

    @property
    def accepted_ids(self) -> list[str]:
        return [c.chunk_id for c in self.accepted]

    def to_dict(self) -> dict:
        return {
            "query_id": self.query_id,
            "config_version": self.config_version,
            "accepted": [c.to_dict() for c in self.accepted],
            "rejected": [
                {"candidate": r.candidate.to_dict(), "reason": str(r.reason)}
                for r in self.rejected
            ],
        }


@dataclass(frozen=True)
class FeedbackEvent:
    message_id: str
    rating: int  # -1, 0 or +1
    reason: str | None = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class FeedbackAck:
    message_id: str
    recorded: bool
    duplicate: bool


@dataclass(frozen=True)
class ShadowTestRecord:
    query_id: str
    control_config_version: int
    candidate_config_version: int
    control_result: RuleResult
    candidate_result: RuleResult
    divergence_score: float
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class QueryTrace:
    trace_id: str
    query: str
    timestamp: datetime
    latency_ms: float
    config_version: int
    subject_id: str | None
    accepted_ids: list[str]
    rejected_counts: dict[str, int]
    signal_means: dict[str, float]  # mean raw signals of accepted chunks
    shadowed: bool
    spans: list[dict]
