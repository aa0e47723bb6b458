"""Traceability API router (read and cleanup of search/LLM audit trails)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.database import get_database
from bizfinder.traceability.repository import TraceabilityRepository
from bizfinder.traceability.schemas import (
    LinkBusinessRequest,
    LLMProcessingResultOut,
    SearchResultsPageResponse,
    SearchSessionListResponse,
    SessionTraceabilityResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/traceability", tags=["traceability"])


def get_traceability_repository(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> TraceabilityRepository:
    """Get traceability repository instance."""
    return TraceabilityRepository(db)


@router.get("/sessions", response_model=SearchSessionListResponse)
async def list_sessions(
    repository: Annotated[TraceabilityRepository, Depends(get_traceability_repository)],
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> SearchSessionListResponse:
    """List search sessions, newest first, with result and LLM counts."""
    data = await repository.list_search_sessions(page=page, page_size=page_size)
    return SearchSessionListResponse(**data)


@router.get("/sessions/{session_id}", response_model=SessionTraceabilityResponse)
async def get_session(
    session_id: str,
    repository: Annotated[TraceabilityRepository, Depends(get_traceability_repository)],
) -> SessionTraceabilityResponse:
    """Get the full audit trail of one search session."""
    session = await repository.get_session_traceability(session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Search session not found",
        )
    return SessionTraceabilityResponse(**session)


@router.get("/sessions/{session_id}/results", response_model=SearchResultsPageResponse)
async def get_session_results(
    session_id: str,
    repository: Annotated[TraceabilityRepository, Depends(get_traceability_repository)],
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    pending_only: bool = False,
) -> SearchResultsPageResponse:
    """Get the stored search results of a session, ordered by position."""
    session = await repository.get_search_session(session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Search session not found",
        )

    data = await repository.get_session_results(
        session_id, page=page, page_size=page_size, pending_only=pending_only
    )
    return SearchResultsPageResponse(**data)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    repository: Annotated[TraceabilityRepository, Depends(get_traceability_repository)],
) -> None:
    """Delete a search session with its results, LLM sessions and outcomes."""
    deleted = await repository.delete_search_session(session_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Search session not found",
        )


@router.post("/llm-results/{llm_result_id}/link", response_model=LLMProcessingResultOut)
async def link_saved_business(
    llm_result_id: str,
    request: LinkBusinessRequest,
    repository: Annotated[TraceabilityRepository, Depends(get_traceability_repository)],
) -> LLMProcessingResultOut:
    """Record which saved business an accepted LLM result produced."""
    existing = await repository.get_llm_processing_result(llm_result_id)
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="LLM processing result not found",
        )

    await repository.link_to_saved_business(llm_result_id, request.business_id)
    updated = await repository.get_llm_processing_result(llm_result_id)
    return LLMProcessingResultOut(**updated)
