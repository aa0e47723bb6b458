"""Traceability API schemas (request/response models)."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class SearchSessionStatus(str, Enum):
    """Status of a search session."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LLMSessionStatus(str, Enum):
    """Status of an LLM processing session."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LLMResultStatus(str, Enum):
    """Outcome of one LLM classification."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERROR = "error"


# =============================================================================
# Response Models
# =============================================================================

class _Document(BaseModel):
    """Base for models read back from MongoDB documents."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SearchResultOut(_Document):
    search_session_id: str
    position: int
    title: str
    url: str
    display_url: str | None = None
    description: str | None = None
    snippet: str | None = None
    query: str
    date: str | None = None
    is_processed: bool = False
    created_at: datetime | None = None


class LLMProcessingResultOut(_Document):
    search_result_id: str
    llm_processing_session_id: str
    status: LLMResultStatus
    confidence: float | None = None
    is_company_website: bool | None = None
    company_name: str | None = None
    website: str | None = None
    extracted_from: str | None = None
    city: str | None = None
    state_province: str | None = None
    country: str | None = None
    categories: list[str] = []
    rejection_reason: str | None = None
    error_message: str | None = None
    llm_prompt: str | None = None
    llm_response: str | None = None
    processing_time: float | None = None
    saved_business_id: str | None = None
    created_at: datetime | None = None


class LLMProcessingSessionOut(_Document):
    search_session_id: str | None = None
    total_results: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    error_count: int = 0
    extraction_quality: float | None = None
    status: LLMSessionStatus
    start_time: datetime | None = None
    end_time: datetime | None = None
    llm_results: list[LLMProcessingResultOut] = []


class SearchResultWithOutcome(SearchResultOut):
    llm_processing: list[LLMProcessingResultOut] = []


class SearchSessionOut(_Document):
    query: str | None = None
    search_queries: list[str] = []
    industry: str | None = None
    location: str | None = None
    city: str | None = None
    state_province: str | None = None
    country: str | None = None
    results_limit: int = 10
    filters: dict[str, Any] | None = None
    total_results: int = 0
    successful_queries: int = 0
    search_time: float = 0.0
    status: SearchSessionStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SearchSessionSummary(SearchSessionOut):
    search_results_count: int = 0
    llm_processing_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    error_count: int = 0


class SearchSessionListResponse(BaseModel):
    sessions: list[SearchSessionSummary]
    total: int
    page: int
    page_size: int
    total_pages: int


class SessionTraceabilityResponse(SearchSessionOut):
    search_results: list[SearchResultWithOutcome] = []
    llm_processing: list[LLMProcessingSessionOut] = []


class SearchResultsPageResponse(BaseModel):
    results: list[SearchResultOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class LinkBusinessRequest(BaseModel):
    """Link an LLM result to the business record saved from it."""
    business_id: str = Field(..., min_length=1)
