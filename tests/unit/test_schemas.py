"""Tests for Pydantic schemas."""

from dataclasses import replace

import pytest
from conftest import make_candidate, make_config
from pydantic import ValidationError

from accuracy_engine.models.domain import ConfigStatus, Rejection, RejectionReason, RuleResult
from accuracy_engine.models.schemas import (
    ConfigOut,
    FeedbackRequest,
    HealthResponse,
    ProposeConfigRequest,
    RetrieveRequest,
    RetrieveResponse,
)


def test_retrieve_request_defaults():
    req = RetrieveRequest(query="refund policy")
    assert req.subject_id is None


def test_feedback_request_rating_range():
    assert FeedbackRequest(message_id="m1", rating=-1).rating == -1
    with pytest.raises(ValidationError):
        FeedbackRequest(message_id="m1", rating=2)
    with pytest.raises(ValidationError):
        FeedbackRequest(message_id="", rating=1)


def test_propose_request_to_domain():
    req = ProposeConfigRequest(
        weights={"semantic": 0.5, "keyword": 0.4, "recency": 0.1},
        thresholds={"min_similarity": 0.3, "max_results": 5},
    )
    weights = req.weights.to_domain()
    thresholds = req.thresholds.to_domain()
    assert weights.diversity_penalty == 0.0
    assert thresholds.max_per_source == 2
    assert req.rationale == "manual"


def test_propose_request_rejects_negative_weight():
    with pytest.raises(ValidationError):
        ProposeConfigRequest(
            weights={"semantic": -0.1, "keyword": 0.4, "recency": 0.1},
            thresholds={"min_similarity": 0.3, "max_results": 5},
        )


def test_retrieve_response_from_result():
    accepted = make_candidate("A", 0.9, 0.8, 0.5)
    rejected = make_candidate("B", 0.4, 0.2, 0.9)
    result = RuleResult(
        accepted=(replace(accepted, composite_score=0.83, rank=1),),
        rejected=(Rejection(rejected, RejectionReason.DIVERSITY_CAP),),
        config_version=3,
        query_id="q-1",
    )
    resp = RetrieveResponse.from_result(result)
    data = resp.model_dump()
    assert data["config_version"] == 3
    assert data["accepted"][0]["semantic_sim"] == 0.9
    assert data["rejected"] == [
        {"chunk_id": "B", "source_ref": "doc-B", "composite_score": None, "reason": "DIVERSITY_CAP"}
    ]


def test_config_out_serialization():
    out = ConfigOut.from_config(make_config(version=4, status=ConfigStatus.SHADOW))
    data = out.model_dump()
    assert data["version"] == 4
    assert data["status"] == "SHADOW"
    assert data["weights"]["semantic"] == out.weights.semantic


def test_health_response():
    resp = HealthResponse(
        status="ok", active_version=1, candidate_version=None, storage_backend="sqlite", tuning_running=True
    )
    assert resp.model_dump()["candidate_version"] is None
