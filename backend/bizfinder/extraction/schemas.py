"""Extraction schemas (classifier input/output and API models)."""

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """One raw search-engine hit to classify."""
    title: str
    link: str
    snippet: str | None = None
    display_link: str | None = None
    search_result_id: str | None = None  # Stored SearchResult, when known


class RawData(BaseModel):
    """The hit a business was extracted from."""
    title: str
    link: str
    snippet: str | None = None


class ExtractedBusiness(BaseModel):
    """Classification of one hit (accepted or rejected)."""
    website: str  # Bare domain, e.g. "example.com"
    company_name: str | None = None
    is_company_website: bool
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_from: str = "title"
    city: str | None = None
    state_province: str | None = None
    country: str | None = None
    categories: list[str] = []
    raw_data: RawData
    search_result_id: str | None = None
    llm_processing_result_id: str | None = None


class ExtractionSummary(BaseModel):
    """Aggregate statistics for one classifier run."""
    total_results: int = 0
    company_websites: int = 0
    directories: int = 0
    forms: int = 0
    accepted: int = 0
    rejected: int = 0
    skipped: int = 0
    extraction_quality: float = 0.0


class BatchSummary(BaseModel):
    """Summary reported by the whole-batch quick path."""
    total_results: int = 0
    company_websites: int = 0
    directories: int = 0
    forms: int = 0
    extraction_quality: float = 0.0
    attempts: int = 1


class ClassifierInput(BaseModel):
    """Input to one classifier run."""
    search_results: list[SearchHit] = Field(..., min_length=1)
    industry: str | None = None
    location: str | None = None
    search_session_id: str | None = None
    llm_processing_session_id: str | None = None
    enable_traceability: bool = True


class ExtractionResult(BaseModel):
    """Output of one classifier run."""
    businesses: list[ExtractedBusiness] = []
    summary: ExtractionSummary
    batch_summary: BatchSummary | None = None
    llm_processing_session_id: str | None = None


# =============================================================================
# API Models
# =============================================================================

class ProcessResultsRequest(BaseModel):
    """Request to classify search results.

    When ``search_session_id`` is given, the stored results of that session
    are classified instead of ``search_results``.
    """
    search_results: list[SearchHit] = []
    industry: str | None = None
    location: str | None = None
    enable_traceability: bool = True
    search_session_id: str | None = None
    pending_only: bool = False


class ProcessingTraceability(BaseModel):
    enabled: bool
    search_session_id: str | None = None
    llm_processing_session_id: str | None = None


class ProcessResultsResponse(BaseModel):
    success: bool = True
    businesses: list[ExtractedBusiness]
    summary: ExtractionSummary
    batch_summary: BatchSummary | None = None
    traceability: ProcessingTraceability
