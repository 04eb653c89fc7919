"""Reason codes attached to structured log events."""

from __future__ import annotations

from enum import StrEnum


class ReasonCode(StrEnum):
    NO_CANDIDATES = "NO_CANDIDATES"
    ALL_BELOW_THRESHOLD = "ALL_BELOW_THRESHOLD"
    SHADOW_TIMEOUT = "SHADOW_TIMEOUT"
    SHADOW_FAILED = "SHADOW_FAILED"
    INSUFFICIENT_SHADOW_SAMPLES = "INSUFFICIENT_SHADOW_SAMPLES"
    INSUFFICIENT_FEEDBACK = "INSUFFICIENT_FEEDBACK"
    CANDIDATE_WORSE = "CANDIDATE_WORSE"
    OBSERVATION_WINDOW_EXPIRED = "OBSERVATION_WINDOW_EXPIRED"
    STALE_DRAFT = "STALE_DRAFT"
    REGRESSION_ROLLBACK = "REGRESSION_ROLLBACK"
    NO_SIGNAL_DIRECTION = "NO_SIGNAL_DIRECTION"
    DUPLICATE_PROPOSAL = "DUPLICATE_PROPOSAL"
    FEEDBACK_DIRECTION = "FEEDBACK_DIRECTION"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    PROMOTION_CONFLICT = "PROMOTION_CONFLICT"
