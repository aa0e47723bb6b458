"""Search API schemas (request/response models)."""

from pydantic import BaseModel, Field


# =============================================================================
# Request
# =============================================================================

class SearchFilters(BaseModel):
    """Hostname/path based result filters."""
    exclude_directories: bool = False
    exclude_forums: bool = False
    exclude_social_media: bool = False
    exclude_news_sites: bool = False
    exclude_blogs: bool = False


class SearchRequest(BaseModel):
    """Search request. ``queries`` wins over the single ``query``."""
    queries: list[str] = []
    query: str | None = None
    results_limit: int = 10  # Clamped to 1-10 (provider page size)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = 1
    max_age_days: int = 365
    require_date_filtering: bool = True
    enable_traceability: bool = True
    industry: str | None = None
    location: str | None = None
    city: str | None = None
    state_province: str | None = None
    country: str | None = None
    existing_search_session_id: str | None = None

    def search_queries(self) -> list[str]:
        if self.queries:
            return self.queries
        return [self.query] if self.query is not None else []


# =============================================================================
# Response
# =============================================================================

class SearchResultItem(BaseModel):
    """One filtered provider hit."""
    position: int
    title: str
    url: str
    display_url: str
    description: str
    cache_id: str | None = None
    query: str
    date: str | None = None


class QueryResult(BaseModel):
    """Outcome of a single query of the fan-out."""
    success: bool
    results: list[SearchResultItem] = []
    total_results: int = 0
    search_time: float = 0.0
    error: str | None = None


class Pagination(BaseModel):
    page: int
    results_limit: int
    has_next_page: bool


class SearchTraceability(BaseModel):
    enabled: bool
    session_id: str | None = None
    results_stored: int = 0
    queries_stored: int = 0


class SearchResponse(BaseModel):
    success: bool = True
    results: list[SearchResultItem]
    query_results: dict[str, QueryResult]
    total_results: int
    successful_queries: int
    pagination: Pagination
    search_time: float
    traceability: SearchTraceability
