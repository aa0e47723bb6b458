"""Tests for the traceability repository."""

import pytest


def search_results(*urls: str) -> list[dict]:
    return [
        {"position": index + 1, "title": f"Result {index + 1}", "url": url, "query": "dentists lyon"}
        for index, url in enumerate(urls)
    ]


ACCEPTED_RESPONSE = '{"website": "dentiste-lyon.fr", "companyName": "Cabinet Dentaire", "isCompanyWebsite": true, "confidence": 0.8}'


class TestSearchSessions:
    """Test search session lifecycle."""

    async def test_create_search_session_stores_queries(self, traceability_repository):
        """Should store the queries and pick the first non-empty one as primary."""
        session = await traceability_repository.create_search_session(["", "dentists lyon"], industry="Dental")

        stored = await traceability_repository.get_search_session(session["_id"])
        assert stored["query"] == "dentists lyon"
        assert stored["search_queries"] == ["", "dentists lyon"]
        assert stored["status"] == "pending"

    async def test_reuses_recent_identical_session(self, traceability_repository):
        """Should return the same session for an identical request within the window."""
        first = await traceability_repository.create_search_session(["dentists lyon"], industry="Dental", country="France")
        second = await traceability_repository.create_search_session(["dentists lyon"], industry="Dental", country="France")

        assert second["_id"] == first["_id"]

    async def test_does_not_reuse_different_session(self, traceability_repository):
        """Should create a new session when parameters differ."""
        first = await traceability_repository.create_search_session(["dentists lyon"], industry="Dental")
        second = await traceability_repository.create_search_session(["dentists paris"], industry="Dental")

        assert second["_id"] != first["_id"]

    async def test_add_search_results_skips_duplicate_urls(self, traceability_repository):
        """Should skip URLs already stored for the session."""
        session = await traceability_repository.create_search_session(["dentists lyon"])

        first = await traceability_repository.add_search_results(session["_id"], search_results("https://a.fr", "https://b.fr"))
        second = await traceability_repository.add_search_results(session["_id"], search_results("https://b.fr", "https://c.fr"))

        assert first == 2
        assert second == 1
        stored = await traceability_repository.get_session_search_results(session["_id"])
        assert [r["url"] for r in stored] == ["https://a.fr", "https://b.fr", "https://c.fr"]

    async def test_complete_search_session_accumulates(self, traceability_repository):
        """Should recount stored results and accumulate query and time totals."""
        session = await traceability_repository.create_search_session(["dentists lyon"])
        await traceability_repository.add_search_results(session["_id"], search_results("https://a.fr", "https://b.fr"))
        await traceability_repository.complete_search_session(session["_id"], total_results=2, successful_queries=1, search_time=0.5)

        await traceability_repository.add_search_results(session["_id"], search_results("https://c.fr"))
        completed = await traceability_repository.complete_search_session(
            session["_id"], total_results=1, successful_queries=1, search_time=0.25
        )

        assert completed["status"] == "completed"
        assert completed["total_results"] == 3
        assert completed["successful_queries"] == 2
        assert completed["search_time"] == pytest.approx(0.75)

    async def test_fail_search_session(self, traceability_repository):
        """Should mark the session failed with its error."""
        session = await traceability_repository.create_search_session(["dentists lyon"])

        await traceability_repository.fail_search_session(session["_id"], "All queries failed")

        stored = await traceability_repository.get_search_session(session["_id"])
        assert stored["status"] == "failed"
        assert stored["error_message"] == "All queries failed"


class TestLLMProcessing:
    """Test LLM processing records."""

    @pytest.fixture
    async def stored(self, traceability_repository):
        session = await traceability_repository.create_search_session(["dentists lyon"])
        await traceability_repository.add_search_results(session["_id"], search_results("https://dentiste-lyon.fr"))
        result = await traceability_repository.find_search_result(session["_id"], "https://dentiste-lyon.fr")
        llm_session = await traceability_repository.create_llm_processing_session(session["_id"], total_results=1)
        return session, result, llm_session

    async def test_records_accepted_result(self, traceability_repository, stored):
        """Should derive fields from the response and mark the search result processed."""
        session, result, llm_session = stored

        row = await traceability_repository.process_search_result(
            search_result_id=result["_id"],
            llm_processing_session_id=llm_session["_id"],
            llm_prompt="PROMPT",
            llm_response=ACCEPTED_RESPONSE,
            processing_time=1.2,
        )

        assert row["status"] == "accepted"
        assert row["website"] == "dentiste-lyon.fr"
        assert row["company_name"] == "Cabinet Dentaire"
        assert row["llm_prompt"] == "PROMPT"
        assert row["llm_response"] == ACCEPTED_RESPONSE
        refreshed = await traceability_repository.find_search_result(session["_id"], "https://dentiste-lyon.fr")
        assert refreshed["is_processed"] is True

    async def test_records_rejected_result(self, traceability_repository, stored):
        """Should record a rejection reason for non-company websites."""
        _, result, llm_session = stored

        row = await traceability_repository.process_search_result(
            search_result_id=result["_id"],
            llm_processing_session_id=llm_session["_id"],
            llm_prompt="PROMPT",
            llm_response='{"website": "pagesjaunes.fr", "isCompanyWebsite": false}',
            processing_time=0.4,
        )

        assert row["status"] == "rejected"
        assert row["rejection_reason"]

    async def test_records_unparseable_response_verbatim(self, traceability_repository, stored):
        """Should store an error row with the untouched response text."""
        _, result, llm_session = stored
        raw = "  I am not sure about this one {broken  "

        row = await traceability_repository.process_search_result(
            search_result_id=result["_id"],
            llm_processing_session_id=llm_session["_id"],
            llm_prompt="PROMPT",
            llm_response=raw,
            processing_time=0.1,
        )

        assert row["status"] == "error"
        assert row["error_message"] == "No valid JSON found in LLM response"
        stored_row = await traceability_repository.get_llm_processing_result(row["_id"])
        assert stored_row["llm_response"] == raw

    async def test_repeated_processing_returns_existing_row(self, traceability_repository, stored, mock_db):
        """Should keep one row per search result and LLM session."""
        _, result, llm_session = stored
        kwargs = dict(
            search_result_id=result["_id"],
            llm_processing_session_id=llm_session["_id"],
            llm_prompt="PROMPT",
            processing_time=0.1,
        )

        first = await traceability_repository.process_search_result(llm_response=ACCEPTED_RESPONSE, **kwargs)
        second = await traceability_repository.process_search_result(llm_response="different", **kwargs)

        assert second["_id"] == first["_id"]
        assert second["llm_response"] == ACCEPTED_RESPONSE
        assert await mock_db["llm_processing_results"].count_documents({}) == 1

    async def test_complete_llm_processing_session(self, traceability_repository, stored):
        """Should store the final counts and close the session."""
        _, _, llm_session = stored

        completed = await traceability_repository.complete_llm_processing_session(
            llm_session["_id"], accepted_count=3, rejected_count=1, error_count=2, extraction_quality=0.75
        )

        assert completed["status"] == "completed"
        assert completed["accepted_count"] == 3
        assert completed["error_count"] == 2
        assert completed["end_time"] is not None

    async def test_link_to_saved_business(self, traceability_repository, stored):
        """Should link a processed result to a saved business."""
        _, result, llm_session = stored
        row = await traceability_repository.process_search_result(
            search_result_id=result["_id"],
            llm_processing_session_id=llm_session["_id"],
            llm_prompt="PROMPT",
            llm_response=ACCEPTED_RESPONSE,
            processing_time=0.1,
        )

        linked = await traceability_repository.link_to_saved_business(row["_id"], "business-42")

        assert linked is True
        stored_row = await traceability_repository.get_llm_processing_result(row["_id"])
        assert stored_row["saved_business_id"] == "business-42"

    async def test_link_unknown_result_returns_false(self, traceability_repository):
        """Should return False for an unknown LLM result."""
        assert await traceability_repository.link_to_saved_business("missing", "business-42") is False


class TestReadAndCleanup:
    """Test the read API and cascade delete."""

    async def _processed_session(self, traceability_repository) -> str:
        session = await traceability_repository.create_search_session(["dentists lyon"])
        await traceability_repository.add_search_results(session["_id"], search_results("https://a.fr", "https://b.fr"))
        results = await traceability_repository.get_session_search_results(session["_id"])
        llm_session = await traceability_repository.create_llm_processing_session(session["_id"], total_results=2)
        for result in results:
            await traceability_repository.process_search_result(
                search_result_id=result["_id"],
                llm_processing_session_id=llm_session["_id"],
                llm_prompt="PROMPT",
                llm_response=ACCEPTED_RESPONSE,
                processing_time=0.1,
            )
        await traceability_repository.complete_llm_processing_session(
            llm_session["_id"], accepted_count=2, rejected_count=0, error_count=0, extraction_quality=1.0
        )
        return session["_id"]

    async def test_get_session_traceability(self, traceability_repository):
        """Should attach results, LLM sessions and outcomes to the session."""
        session_id = await self._processed_session(traceability_repository)

        trail = await traceability_repository.get_session_traceability(session_id)

        assert len(trail["search_results"]) == 2
        assert all(len(r["llm_processing"]) == 1 for r in trail["search_results"])
        assert len(trail["llm_processing"]) == 1
        assert len(trail["llm_processing"][0]["llm_results"]) == 2

    async def test_get_session_traceability_unknown(self, traceability_repository):
        """Should return None for an unknown session."""
        assert await traceability_repository.get_session_traceability("missing") is None

    async def test_list_search_sessions(self, traceability_repository):
        """Should list sessions with aggregated counts."""
        await self._processed_session(traceability_repository)

        page = await traceability_repository.list_search_sessions(page=1, page_size=10)

        assert page["total"] == 1
        assert page["total_pages"] == 1
        summary = page["sessions"][0]
        assert summary["search_results_count"] == 2
        assert summary["llm_processing_count"] == 1
        assert summary["accepted_count"] == 2

    async def test_get_session_results_pending_only(self, traceability_repository):
        """Should filter out processed results when asked."""
        session_id = await self._processed_session(traceability_repository)

        everything = await traceability_repository.get_session_results(session_id)
        pending = await traceability_repository.get_session_results(session_id, pending_only=True)

        assert everything["total"] == 2
        assert pending["total"] == 0

    async def test_delete_search_session_cascades(self, traceability_repository, mock_db):
        """Should delete the session and everything it owns."""
        session_id = await self._processed_session(traceability_repository)

        deleted = await traceability_repository.delete_search_session(session_id)

        assert deleted is True
        assert await mock_db["search_sessions"].count_documents({}) == 0
        assert await mock_db["search_results"].count_documents({}) == 0
        assert await mock_db["llm_processing_sessions"].count_documents({}) == 0
        assert await mock_db["llm_processing_results"].count_documents({}) == 0

    async def test_delete_unknown_session(self, traceability_repository):
        """Should return False for an unknown session."""
        assert await traceability_repository.delete_search_session("missing") is False
