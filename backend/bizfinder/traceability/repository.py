"""Traceability repository for MongoDB operations.

Records every search session, search result, LLM processing session and
per-result LLM outcome so a run can be audited after the fact.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.core.interfaces import ITraceabilityStore
from bizfinder.extraction.validation import coerce_classification
from bizfinder.llm.json_extractor import extract_json
from bizfinder.traceability.models import (
    create_llm_processing_result_document,
    create_llm_processing_session_document,
    create_search_result_document,
    create_search_session_document,
)
from bizfinder.traceability.schemas import (
    LLMResultStatus,
    LLMSessionStatus,
    SearchSessionStatus,
)

logger = logging.getLogger(__name__)

# Identical search requests within this window reuse the same session
SESSION_REUSE_WINDOW_SECONDS = 60

REJECTION_REASON_NOT_COMPANY = "LLM determined this is not a company website"


class TraceabilityRepository(ITraceabilityStore):
    """Repository for search and LLM processing traceability."""

    COLLECTION_SESSIONS = "search_sessions"
    COLLECTION_RESULTS = "search_results"
    COLLECTION_LLM_SESSIONS = "llm_processing_sessions"
    COLLECTION_LLM_RESULTS = "llm_processing_results"

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._sessions = db[self.COLLECTION_SESSIONS]
        self._results = db[self.COLLECTION_RESULTS]
        self._llm_sessions = db[self.COLLECTION_LLM_SESSIONS]
        self._llm_results = db[self.COLLECTION_LLM_RESULTS]

    async def ensure_indexes(self) -> None:
        """Create uniqueness and lookup indexes."""
        await self._results.create_index(
            [("search_session_id", 1), ("url", 1)], unique=True
        )
        await self._llm_results.create_index(
            [("search_result_id", 1), ("llm_processing_session_id", 1)], unique=True
        )
        await self._llm_sessions.create_index("search_session_id")
        await self._sessions.create_index("created_at")

    # =========================================================================
    # Search Sessions
    # =========================================================================

    async def create_search_session(
        self,
        queries: list[str],
        industry: str | None = None,
        location: str | None = None,
        city: str | None = None,
        state_province: str | None = None,
        country: str | None = None,
        results_limit: int = 10,
        filters: dict[str, Any] | None = None,
        search_engine_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a new search session, or reuse a very recent identical one."""
        for index, query in enumerate(queries):
            logger.info(f"Search session query {index + 1}/{len(queries)}: '{query}'")

        recent_cutoff = datetime.now(timezone.utc) - timedelta(seconds=SESSION_REUSE_WINDOW_SECONDS)
        existing = await self._sessions.find_one(
            {
                "created_at": {"$gte": recent_cutoff},
                "search_queries": queries,
                "industry": industry,
                "city": city,
                "state_province": state_province,
                "country": country,
                "results_limit": results_limit,
            },
            sort=[("created_at", -1)],
        )

        if existing:
            logger.info(f"Reusing recent search session {existing['_id']}")
            return existing

        doc = create_search_session_document(
            queries=queries,
            industry=industry,
            location=location,
            city=city,
            state_province=state_province,
            country=country,
            results_limit=results_limit,
            filters=filters,
            search_engine_id=search_engine_id,
        )
        await self._sessions.insert_one(doc)

        logger.info(f"Created search session {doc['_id']} (primary query: '{doc['query']}')")
        return doc

    async def get_search_session(self, session_id: str) -> dict[str, Any] | None:
        """Get a search session by ID."""
        return await self._sessions.find_one({"_id": session_id})

    async def add_search_results(
        self,
        session_id: str,
        results: list[dict[str, Any]],
    ) -> int:
        """Add search results to a session.

        A URL already stored for the session is skipped.

        Returns:
            Number of results actually inserted
        """
        inserted = 0

        for result in results:
            url = result.get("url", "")
            if not url:
                continue

            existing = await self._results.find_one(
                {"search_session_id": session_id, "url": url},
                {"_id": 1},
            )
            if existing:
                continue

            await self._results.insert_one(create_search_result_document(session_id, result))
            inserted += 1

        logger.info(f"Added {inserted}/{len(results)} search results to session {session_id}")
        return inserted

    async def complete_search_session(
        self,
        session_id: str,
        total_results: int,
        successful_queries: int,
        search_time: float,
    ) -> dict[str, Any] | None:
        """Mark a search session completed.

        ``total_results`` is recomputed from the stored rows, and query/time
        aggregates accumulate, so several pages against one session add up.
        """
        stored_count = await self._results.count_documents({"search_session_id": session_id})

        await self._sessions.update_one(
            {"_id": session_id},
            {
                "$set": {
                    "total_results": stored_count or total_results,
                    "status": SearchSessionStatus.COMPLETED.value,
                    "updated_at": datetime.now(timezone.utc),
                },
                "$inc": {
                    "successful_queries": successful_queries,
                    "search_time": search_time,
                },
            },
        )

        session = await self._sessions.find_one({"_id": session_id})
        if session:
            logger.info(f"Completed search session {session_id} with {session['total_results']} results")
        return session

    async def fail_search_session(self, session_id: str, error: str) -> None:
        """Mark a search session failed."""
        await self._sessions.update_one(
            {"_id": session_id},
            {
                "$set": {
                    "status": SearchSessionStatus.FAILED.value,
                    "error_message": error,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )

    async def find_search_result(self, session_id: str, url: str) -> dict[str, Any] | None:
        """Find a stored search result by session and URL."""
        return await self._results.find_one({"search_session_id": session_id, "url": url})

    async def get_session_search_results(
        self,
        session_id: str,
        pending_only: bool = False,
    ) -> list[dict[str, Any]]:
        """Get all search results of a session ordered by position."""
        query: dict[str, Any] = {"search_session_id": session_id}
        if pending_only:
            query["is_processed"] = False

        cursor = self._results.find(query).sort([("position", 1), ("created_at", 1)])
        return await cursor.to_list(length=None)

    # =========================================================================
    # LLM Processing
    # =========================================================================

    async def create_llm_processing_session(
        self,
        search_session_id: str | None,
        total_results: int,
    ) -> dict[str, Any]:
        """Open an LLM processing session."""
        doc = create_llm_processing_session_document(search_session_id, total_results)
        await self._llm_sessions.insert_one(doc)

        logger.info(f"Created LLM processing session {doc['_id']} for {total_results} results")
        return doc

    async def process_search_result(
        self,
        search_result_id: str,
        llm_processing_session_id: str,
        llm_prompt: str,
        llm_response: str,
        processing_time: float,
    ) -> dict[str, Any]:
        """Record the LLM outcome for one search result.

        The outcome fields are derived from the response here; prompt and
        response are stored verbatim whether or not the response parses.
        One row per (search result, LLM session): a repeated call returns
        the existing row untouched.
        """
        existing = await self._llm_results.find_one({
            "search_result_id": search_result_id,
            "llm_processing_session_id": llm_processing_session_id,
        })
        if existing:
            logger.warning(
                f"Search result {search_result_id} already recorded in LLM session "
                f"{llm_processing_session_id}"
            )
            return existing

        outcome = self._parse_llm_response(llm_response)

        doc = create_llm_processing_result_document(
            search_result_id=search_result_id,
            llm_processing_session_id=llm_processing_session_id,
            llm_prompt=llm_prompt,
            llm_response=llm_response,
            processing_time=processing_time,
            **outcome,
        )
        await self._llm_results.insert_one(doc)

        await self._results.update_one(
            {"_id": search_result_id},
            {"$set": {"is_processed": True}},
        )

        logger.info(f"Processed search result {search_result_id}: {doc['status']}")
        return doc

    async def get_llm_processing_result(self, result_id: str) -> dict[str, Any] | None:
        """Get an LLM processing result by ID."""
        return await self._llm_results.find_one({"_id": result_id})

    async def complete_llm_processing_session(
        self,
        session_id: str,
        accepted_count: int,
        rejected_count: int,
        error_count: int,
        extraction_quality: float,
    ) -> dict[str, Any] | None:
        """Close an LLM processing session with its final statistics."""
        now = datetime.now(timezone.utc)

        await self._llm_sessions.update_one(
            {"_id": session_id},
            {
                "$set": {
                    "status": LLMSessionStatus.COMPLETED.value,
                    "accepted_count": accepted_count,
                    "rejected_count": rejected_count,
                    "error_count": error_count,
                    "extraction_quality": extraction_quality,
                    "end_time": now,
                    "updated_at": now,
                }
            },
        )

        logger.info(
            f"Completed LLM processing session {session_id}: accepted={accepted_count}, "
            f"rejected={rejected_count}, errors={error_count}, quality={extraction_quality * 100:.1f}%"
        )
        return await self._llm_sessions.find_one({"_id": session_id})

    async def link_to_saved_business(self, llm_result_id: str, business_id: str) -> bool:
        """Link a processed result to a business record saved downstream."""
        result = await self._llm_results.update_one(
            {"_id": llm_result_id},
            {"$set": {"saved_business_id": business_id}},
        )

        if result.modified_count > 0:
            logger.info(f"Linked LLM result {llm_result_id} to business {business_id}")
        return result.modified_count > 0

    # =========================================================================
    # Read API
    # =========================================================================

    async def get_session_traceability(self, session_id: str) -> dict[str, Any] | None:
        """Get a search session with its results, LLM sessions and outcomes."""
        session = await self._sessions.find_one({"_id": session_id})
        if not session:
            return None

        search_results = await self.get_session_search_results(session_id)

        llm_sessions = await self._llm_sessions.find(
            {"search_session_id": session_id}
        ).sort("created_at", -1).to_list(length=None)

        llm_session_ids = [s["_id"] for s in llm_sessions]
        llm_results = await self._llm_results.find(
            {"llm_processing_session_id": {"$in": llm_session_ids}}
        ).to_list(length=None)

        outcomes_by_result: dict[str, list[dict[str, Any]]] = {}
        outcomes_by_session: dict[str, list[dict[str, Any]]] = {}
        for llm_result in llm_results:
            outcomes_by_result.setdefault(llm_result["search_result_id"], []).append(llm_result)
            outcomes_by_session.setdefault(llm_result["llm_processing_session_id"], []).append(llm_result)

        for search_result in search_results:
            search_result["llm_processing"] = outcomes_by_result.get(search_result["_id"], [])

        for llm_session in llm_sessions:
            llm_session["llm_results"] = outcomes_by_session.get(llm_session["_id"], [])

        session["search_results"] = search_results
        session["llm_processing"] = llm_sessions
        return session

    async def list_search_sessions(
        self,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        """Get search sessions, newest first, with summary statistics."""
        skip = (page - 1) * page_size

        cursor = self._sessions.find({}).sort("created_at", -1).skip(skip).limit(page_size)
        sessions = await cursor.to_list(length=page_size)
        total = await self._sessions.count_documents({})

        for session in sessions:
            session["search_results_count"] = await self._results.count_documents(
                {"search_session_id": session["_id"]}
            )
            llm_sessions = await self._llm_sessions.find(
                {"search_session_id": session["_id"]}
            ).to_list(length=None)
            session["llm_processing_count"] = len(llm_sessions)
            session["accepted_count"] = sum(s.get("accepted_count", 0) for s in llm_sessions)
            session["rejected_count"] = sum(s.get("rejected_count", 0) for s in llm_sessions)
            session["error_count"] = sum(s.get("error_count", 0) for s in llm_sessions)

        return {
            "sessions": sessions,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }

    async def get_session_results(
        self,
        session_id: str,
        page: int = 1,
        page_size: int = 20,
        pending_only: bool = False,
    ) -> dict[str, Any]:
        """Get paginated search results of a session."""
        results = await self.get_session_search_results(session_id, pending_only=pending_only)
        total = len(results)

        start = (page - 1) * page_size
        end = start + page_size

        return {
            "results": results[start:end],
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def delete_search_session(self, session_id: str) -> bool:
        """Delete a search session and everything it owns."""
        session = await self._sessions.find_one({"_id": session_id})
        if not session:
            return False

        llm_sessions = await self._llm_sessions.find(
            {"search_session_id": session_id}
        ).to_list(length=None)
        llm_session_ids = [s["_id"] for s in llm_sessions]

        await self._llm_results.delete_many({"llm_processing_session_id": {"$in": llm_session_ids}})
        await self._llm_sessions.delete_many({"search_session_id": session_id})
        await self._results.delete_many({"search_session_id": session_id})
        await self._sessions.delete_one({"_id": session_id})

        logger.info(f"Deleted search session {session_id} and {len(llm_session_ids)} LLM sessions")
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_llm_response(self, response: str) -> dict[str, Any]:
        """Derive status and extracted fields from a raw LLM response."""
        parsed = extract_json(response)
        if parsed is None:
            return {
                "status": LLMResultStatus.ERROR,
                "error_message": "No valid JSON found in LLM response",
            }

        fields = coerce_classification(parsed)
        if fields is None:
            return {
                "status": LLMResultStatus.ERROR,
                "error_message": "Unexpected response structure from LLM",
            }

        if not fields["is_company_website"]:
            return {
                **fields,
                "status": LLMResultStatus.REJECTED,
                "rejection_reason": REJECTION_REASON_NOT_COMPANY,
            }

        return {**fields, "status": LLMResultStatus.ACCEPTED}
