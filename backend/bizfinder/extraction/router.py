"""Extraction API router."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.database import get_database
from bizfinder.extraction.exceptions import ExtractionError, NoSearchResultsError
from bizfinder.extraction.schemas import ProcessResultsRequest, ProcessResultsResponse
from bizfinder.extraction.service import ExtractionService, get_extraction_service
from bizfinder.traceability.exceptions import SearchSessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/extraction", tags=["extraction"])


async def get_service(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> ExtractionService:
    """Get extraction service instance."""
    return get_extraction_service(db)


@router.post("/process-results", response_model=ProcessResultsResponse)
async def process_results(
    request: ProcessResultsRequest,
    service: Annotated[ExtractionService, Depends(get_service)],
):
    """
    Classify search results as company websites and extract business data.

    Pass either `search_results` directly or a `search_session_id` whose
    stored results should be processed (`pending_only` restricts to results
    not yet processed).
    """
    try:
        return await service.process_results(request)
    except SearchSessionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except NoSearchResultsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Failed to process search results",
                "details": e.message,
            },
        )
