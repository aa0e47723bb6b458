"""Extraction service - feeds search hits (inline or stored) to the classifier."""

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.extraction.classifier import SearchResultClassifier, create_classifier
from bizfinder.extraction.exceptions import NoSearchResultsError
from bizfinder.extraction.schemas import (
    ClassifierInput,
    ProcessingTraceability,
    ProcessResultsRequest,
    ProcessResultsResponse,
    SearchHit,
)
from bizfinder.llm.client import get_llm_client
from bizfinder.traceability.exceptions import SearchSessionNotFoundError
from bizfinder.traceability.repository import TraceabilityRepository

logger = logging.getLogger(__name__)


def hit_from_stored_result(result: dict[str, Any]) -> SearchHit:
    """Convert a stored search result document into a classifier hit."""
    return SearchHit(
        title=result.get("title", ""),
        link=result.get("url", ""),
        snippet=result.get("snippet") or result.get("description"),
        display_link=result.get("display_url"),
        search_result_id=result["_id"],
    )


class ExtractionService:
    """Service for classifying search results into businesses."""

    def __init__(
        self,
        classifier: SearchResultClassifier,
        traceability: TraceabilityRepository,
    ) -> None:
        self._classifier = classifier
        self._traceability = traceability

    async def process_results(self, request: ProcessResultsRequest) -> ProcessResultsResponse:
        """Classify the request's hits, or the stored hits of its search session.

        Raises:
            SearchSessionNotFoundError: Unknown ``search_session_id``
            NoSearchResultsError: Nothing to classify
            ExtractionError: Batch quick path exhausted its retries
        """
        hits = request.search_results

        if request.search_session_id:
            session = await self._traceability.get_search_session(request.search_session_id)
            if not session:
                raise SearchSessionNotFoundError(request.search_session_id)

            stored = await self._traceability.get_session_search_results(
                request.search_session_id, pending_only=request.pending_only
            )
            hits = [hit_from_stored_result(result) for result in stored]
            logger.info(f"Loaded {len(hits)} stored results from search session {request.search_session_id}")

        if not hits:
            raise NoSearchResultsError()

        result = await self._classifier.run(
            ClassifierInput(
                search_results=hits,
                industry=request.industry,
                location=request.location,
                search_session_id=request.search_session_id,
                enable_traceability=request.enable_traceability,
            )
        )

        return ProcessResultsResponse(
            businesses=result.businesses,
            summary=result.summary,
            batch_summary=result.batch_summary,
            traceability=ProcessingTraceability(
                enabled=result.llm_processing_session_id is not None,
                search_session_id=request.search_session_id,
                llm_processing_session_id=result.llm_processing_session_id,
            ),
        )


# =============================================================================
# Factory
# =============================================================================

def get_extraction_service(db: AsyncIOMotorDatabase) -> ExtractionService:
    """Create extraction service with its dependencies."""
    traceability = TraceabilityRepository(db)
    return ExtractionService(
        classifier=create_classifier(get_llm_client(), traceability),
        traceability=traceability,
    )
