"""Retrieval endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from accuracy_engine.api.dependencies import get_retrieval_service
from accuracy_engine.exceptions import InvalidQuery, RequestTimeout, UpstreamUnavailable
from accuracy_engine.models.schemas import RetrieveRequest, RetrieveResponse
from accuracy_engine.pipeline.retrieval_service import RetrievalService

router = APIRouter()


@router.post("/retrieve", response_model=RetrieveResponse)
async def retrieve(
    request: RetrieveRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> RetrieveResponse:
    try:
        result = await service.retrieve(request.query, subject_id=request.subject_id)
    except InvalidQuery as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except RequestTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    return RetrieveResponse.from_result(result)
