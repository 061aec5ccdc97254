"""API routes for the Car Search service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Path

from car_search.api.dependencies import get_search_manager
from car_search.domain.errors import SearchNotFoundError, SubmissionError
from car_search.domain.models import PollerSnapshot, QueryHandle, SearchRequest
from car_search.infrastructure.search_session_manager import SearchSessionManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/searches", response_model=QueryHandle, tags=["searches"])
async def start_search(
    request: SearchRequest,
    manager: SearchSessionManager = Depends(get_search_manager),
) -> QueryHandle:
    """
    Submit availability search.

    Returns immediately; offers are collected in the background and can be
    read via GET /searches/{query_id}.
    """
    logger.info(
        "start_search called",
        extra={
            "event": "start_search",
            "pickup": request.pickup_unlocode,
            "dropoff": request.dropoff_unlocode,
        },
    )
    try:
        handle = await manager.start_search(request)
    except SubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None

    logger.info(
        "start_search finished",
        extra={"event": "search_started", "query_id": handle.query_id},
    )
    return handle


@router.get("/searches/{query_id}", response_model=PollerSnapshot, tags=["searches"])
async def get_search(
    query_id: str = Path(description="Query identifier returned by POST /searches"),
    manager: SearchSessionManager = Depends(get_search_manager),
) -> PollerSnapshot:
    """Return offers accumulated so far and the search phase."""
    try:
        return manager.get_snapshot(query_id)
    except SearchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.delete("/searches/{query_id}", response_model=PollerSnapshot, tags=["searches"])
async def cancel_search(
    query_id: str = Path(description="Query identifier returned by POST /searches"),
    manager: SearchSessionManager = Depends(get_search_manager),
) -> PollerSnapshot:
    """Cancel search. Offers collected before cancellation are kept."""
    logger.info("cancel_search called", extra={"event": "cancel", "query_id": query_id})
    try:
        return manager.cancel_search(query_id)
    except SearchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
