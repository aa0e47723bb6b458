"""Traceability MongoDB document factories."""

import uuid
from datetime import datetime, timezone
from typing import Any

from bizfinder.traceability.schemas import (
    LLMResultStatus,
    LLMSessionStatus,
    SearchSessionStatus,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def create_search_session_document(
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
    """Create a search session document for MongoDB insertion."""
    now = datetime.now(timezone.utc)

    # Primary query is the first non-empty one
    primary_query = next((q for q in queries if q.strip()), None)

    return {
        "_id": _new_id(),
        "query": primary_query,
        "search_queries": queries,
        "industry": industry,
        "location": location,
        "city": city,
        "state_province": state_province,
        "country": country,
        "search_engine_id": search_engine_id,
        "results_limit": results_limit,
        "filters": filters or {},
        "total_results": 0,
        "successful_queries": 0,
        "search_time": 0.0,
        "status": SearchSessionStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    }


def create_search_result_document(session_id: str, result: dict[str, Any]) -> dict[str, Any]:
    """Create a search result document from a provider hit."""
    return {
        "_id": _new_id(),
        "search_session_id": session_id,
        "position": result.get("position", 0),
        "title": result.get("title", ""),
        "url": result.get("url", ""),
        "display_url": result.get("display_url"),
        "description": result.get("description"),
        "snippet": result.get("snippet") or result.get("description"),
        "cache_id": result.get("cache_id"),
        "query": result.get("query", ""),
        "date": result.get("date"),
        "is_processed": False,
        "created_at": datetime.now(timezone.utc),
    }


def create_llm_processing_session_document(
    search_session_id: str | None,
    total_results: int,
) -> dict[str, Any]:
    """Create an LLM processing session document."""
    now = datetime.now(timezone.utc)

    return {
        "_id": _new_id(),
        "search_session_id": search_session_id,
        "total_results": total_results,
        "accepted_count": 0,
        "rejected_count": 0,
        "error_count": 0,
        "extraction_quality": None,
        "status": LLMSessionStatus.PROCESSING.value,
        "start_time": now,
        "end_time": None,
        "created_at": now,
        "updated_at": now,
    }


def create_llm_processing_result_document(
    search_result_id: str,
    llm_processing_session_id: str,
    status: LLMResultStatus,
    llm_prompt: str,
    llm_response: str,
    processing_time: float,
    **fields: Any,
) -> dict[str, Any]:
    """Create an LLM processing result (audit row).

    Prompt and response are stored exactly as given.
    """
    doc = {
        "_id": _new_id(),
        "search_result_id": search_result_id,
        "llm_processing_session_id": llm_processing_session_id,
        "status": status.value,
        "confidence": None,
        "is_company_website": None,
        "company_name": None,
        "website": None,
        "extracted_from": None,
        "city": None,
        "state_province": None,
        "country": None,
        "categories": [],
        "rejection_reason": None,
        "error_message": None,
        "llm_prompt": llm_prompt,
        "llm_response": llm_response,
        "processing_time": processing_time,
        "saved_business_id": None,
        "created_at": datetime.now(timezone.utc),
    }

    for key, value in fields.items():
        if key in doc and value is not None:
            doc[key] = value

    return doc
