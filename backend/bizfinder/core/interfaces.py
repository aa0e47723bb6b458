from abc import ABC, abstractmethod
from typing import Any

from bizfinder.llm.schemas import LLMResponse


class ILLMClient(ABC):
    """Interface for text-completion models (Interface Segregation)."""

    @abstractmethod
    async def call(self, prompt: str) -> LLMResponse:
        """Send a prompt and return the model's raw text."""
        pass


class ITraceabilityStore(ABC):
    """Interface for the search/LLM audit trail."""

    @abstractmethod
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
        """Create (or reuse a very recent identical) search session."""
        pass

    @abstractmethod
    async def add_search_results(
        self, session_id: str, results: list[dict[str, Any]]
    ) -> int:
        """Store search results, skipping URLs already stored for the session."""
        pass

    @abstractmethod
    async def complete_search_session(
        self,
        session_id: str,
        total_results: int,
        successful_queries: int,
        search_time: float,
    ) -> dict[str, Any] | None:
        """Mark a search session completed, accumulating aggregates."""
        pass

    @abstractmethod
    async def find_search_result(self, session_id: str, url: str) -> dict[str, Any] | None:
        """Find a stored search result by session and URL."""
        pass

    @abstractmethod
    async def create_llm_processing_session(
        self, search_session_id: str | None, total_results: int
    ) -> dict[str, Any]:
        """Open an LLM processing session."""
        pass

    @abstractmethod
    async def process_search_result(
        self,
        search_result_id: str,
        llm_processing_session_id: str,
        llm_prompt: str,
        llm_response: str,
        processing_time: float,
    ) -> dict[str, Any]:
        """Record the outcome of one LLM call for one search result."""
        pass

    @abstractmethod
    async def complete_llm_processing_session(
        self,
        session_id: str,
        accepted_count: int,
        rejected_count: int,
        error_count: int,
        extraction_quality: float,
    ) -> dict[str, Any] | None:
        """Close an LLM processing session with final counts."""
        pass


class IJobRepository(ABC):
    """Interface for external job bookkeeping."""

    @abstractmethod
    async def add_job(self, job: dict[str, Any]) -> dict[str, Any]:
        """Persist a newly submitted job."""
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        """Get a job by ID."""
        pass

    @abstractmethod
    async def get_jobs_needing_processing(self) -> list[dict[str, Any]]:
        """Get all jobs not yet in a terminal state."""
        pass

    @abstractmethod
    async def update_job(self, job_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Apply updates to a job. Returns the updated job or None if not found."""
        pass

    @abstractmethod
    async def delete_job(self, job_id: str) -> bool:
        """Permanently delete a job."""
        pass
