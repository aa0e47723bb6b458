"""Search service - fans queries out to the provider and records the session."""

import asyncio
import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.search.clients.google_search import (
    MAX_RESULTS_PER_REQUEST,
    GoogleSearchClient,
    get_google_search_client,
)
from bizfinder.search.exceptions import NoQueriesError, SearchNotConfiguredError
from bizfinder.search.schemas import (
    Pagination,
    QueryResult,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SearchTraceability,
)
from bizfinder.traceability.repository import TraceabilityRepository

logger = logging.getLogger(__name__)


class SearchService:
    """Service for multi-query web searches with traceability."""

    def __init__(
        self,
        google_client: GoogleSearchClient,
        traceability: TraceabilityRepository | None = None,
    ) -> None:
        """Initialize the search service.

        Args:
            google_client: Google Search API client
            traceability: Traceability repository; None disables recording
        """
        self._google = google_client
        self._traceability = traceability

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Run every query in parallel and merge the hits.

        Hits are de-duplicated by URL across queries, first query wins. A
        failing query is reported in ``query_results`` and never fails the
        whole request. Traceability is best-effort.

        Raises:
            NoQueriesError: No non-empty query in the request
            SearchNotConfiguredError: Provider credentials missing
        """
        queries = request.search_queries()
        if not any(q.strip() for q in queries):
            raise NoQueriesError()
        if not self._google.is_configured:
            raise SearchNotConfiguredError()

        limit = min(max(request.results_limit, 1), MAX_RESULTS_PER_REQUEST)
        page = max(request.page, 1)

        logger.info(f"Search request: {len(queries)} queries, limit={limit}, page={page}")

        session_id = None
        if request.enable_traceability and self._traceability is not None:
            session_id = await self._open_session(request, queries, limit)

        outcomes = await asyncio.gather(
            *(self._run_query(query, index, len(queries), request, limit, page) for index, query in enumerate(queries))
        )

        query_results: dict[str, QueryResult] = {}
        merged: list[SearchResultItem] = []
        seen_urls: set[str] = set()

        for query, outcome in zip(queries, outcomes):
            query_results[query] = outcome
            if not outcome.success:
                continue
            for item in outcome.results:
                if item.url in seen_urls:
                    continue
                seen_urls.add(item.url)
                merged.append(item)

        successful_queries = sum(1 for outcome in query_results.values() if outcome.success)
        search_time = sum(outcome.search_time for outcome in query_results.values())
        has_next_page = any(
            outcome.success and outcome.total_results > page * limit
            for outcome in query_results.values()
        )

        logger.info(
            f"Search completed: {successful_queries}/{len(queries)} queries succeeded, "
            f"{len(merged)} unique results"
        )

        traceability = SearchTraceability(enabled=session_id is not None, session_id=session_id)
        if session_id:
            traceability.queries_stored = len([q for q in queries if q.strip()])
            traceability.results_stored = await self._record_results(
                session_id, merged, successful_queries, search_time
            )

        return SearchResponse(
            results=merged,
            query_results=query_results,
            total_results=len(merged),
            successful_queries=successful_queries,
            pagination=Pagination(page=page, results_limit=limit, has_next_page=has_next_page),
            search_time=search_time,
            traceability=traceability,
        )

    async def _run_query(
        self,
        query: str,
        index: int,
        total: int,
        request: SearchRequest,
        limit: int,
        page: int,
    ) -> QueryResult:
        """Run one query; any failure becomes an unsuccessful QueryResult."""
        current_query = query.strip()
        if not current_query:
            logger.info(f"Skipping empty query at index {index}")
            return QueryResult(success=False, error="Empty query")

        logger.info(f"Processing query {index + 1}/{total}: '{current_query}'")
        try:
            return await self._google.search(
                current_query,
                filters=request.filters,
                limit=limit,
                page=page,
                max_age_days=request.max_age_days,
                require_date_filtering=request.require_date_filtering,
            )
        except Exception as e:
            logger.error(f"Error processing query '{current_query}': {e}")
            return QueryResult(success=False, error=str(e) or "Unknown error")

    # =========================================================================
    # Traceability (best-effort)
    # =========================================================================

    async def _open_session(self, request: SearchRequest, queries: list[str], limit: int) -> str | None:
        try:
            if request.existing_search_session_id:
                existing = await self._traceability.get_search_session(request.existing_search_session_id)
                if existing:
                    logger.info(f"Continuing search session {existing['_id']}")
                    return existing["_id"]
                logger.warning(
                    f"Search session {request.existing_search_session_id} not found, creating a new one"
                )

            session = await self._traceability.create_search_session(
                queries=queries,
                industry=request.industry,
                location=request.location,
                city=request.city,
                state_province=request.state_province,
                country=request.country,
                results_limit=limit,
                filters=request.filters.model_dump(),
                search_engine_id=self._google.search_engine_id,
            )
            return session["_id"]
        except Exception as e:
            logger.error(f"Failed to create search session, continuing without traceability: {e}")
            return None

    async def _record_results(
        self,
        session_id: str,
        results: list[SearchResultItem],
        successful_queries: int,
        search_time: float,
    ) -> int:
        stored = 0
        try:
            if successful_queries == 0:
                session = await self._traceability.get_search_session(session_id)
                if session and session.get("total_results"):
                    logger.warning(
                        f"All queries failed for a further page of session {session_id}, keeping its earlier results"
                    )
                    return 0
                await self._traceability.fail_search_session(session_id, "All search queries failed")
                return 0

            documents: list[dict[str, Any]] = [item.model_dump() for item in results]
            stored = await self._traceability.add_search_results(session_id, documents)
            await self._traceability.complete_search_session(
                session_id,
                total_results=len(results),
                successful_queries=successful_queries,
                search_time=search_time,
            )
        except Exception as e:
            logger.error(f"Failed to record search results for session {session_id}: {e}")
        return stored


# =============================================================================
# Factory
# =============================================================================

def get_search_service(db: AsyncIOMotorDatabase) -> SearchService:
    """Create search service with its dependencies."""
    return SearchService(
        google_client=get_google_search_client(),
        traceability=TraceabilityRepository(db),
    )
