"""Search API router."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.database import get_database
from bizfinder.search.exceptions import NoQueriesError, SearchNotConfiguredError
from bizfinder.search.schemas import SearchRequest, SearchResponse
from bizfinder.search.service import SearchService, get_search_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


# =============================================================================
# Dependencies
# =============================================================================

async def get_service(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> SearchService:
    """Get search service instance."""
    return get_search_service(db)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    service: Annotated[SearchService, Depends(get_service)],
) -> SearchResponse:
    """
    Run one or more web search queries.

    Queries run in parallel; hits are merged and de-duplicated by URL.
    When `enable_traceability` is set, the session and its hits are
    recorded (pass `existing_search_session_id` to add a further page to
    an earlier session).
    """
    try:
        return await service.search(request)
    except NoQueriesError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except SearchNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message,
        )
