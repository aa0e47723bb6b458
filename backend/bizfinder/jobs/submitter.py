"""Submits long-running jobs to the external marketing API."""

import logging
from typing import Any

import httpx

from bizfinder.config import get_settings
from bizfinder.jobs.schemas import (
    BasicEnrichmentRequest,
    EnhancedEnrichmentRequest,
    JobSubmissionResponse,
    KeywordGenerationRequest,
)

logger = logging.getLogger(__name__)

BYPASS_HEADER = "x-vercel-protection-bypass"

KEYWORDS_PATH = "/api/keywords"
ENRICH_PATH = "/api/enrich"


def _as_text(value: Any) -> str | None:
    """Read a loosely typed text field; error objects keep their message."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("message"), str):
        return value["message"]
    return str(value)


def _as_number(value: Any, cast: type) -> Any:
    """Read a numeric field, dropping anything that is not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return cast(value)


class JobSubmitter:
    """Client for the external job submission endpoints.

    Submission never raises: transport and HTTP failures come back as
    ``JobSubmissionResponse(success=False, job_id="", error=...)``.
    """

    def __init__(
        self,
        base_url: str,
        bypass_secret: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the submitter.

        Args:
            base_url: Base URL of the marketing API
            bypass_secret: Deployment-protection bypass token, sent when set
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._bypass_secret = bypass_secret
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._bypass_secret:
                headers[BYPASS_HEADER] = self._bypass_secret
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def submit_keyword_generation(self, request: KeywordGenerationRequest) -> JobSubmissionResponse:
        """Submit a keyword generation job for an industry."""
        logger.info(f"Submitting keyword generation job for industry '{request.industry}'")
        return await self._submit(KEYWORDS_PATH, {"productOrMarket": request.industry})

    async def submit_basic_enrichment(self, request: BasicEnrichmentRequest) -> JobSubmissionResponse:
        """Submit a basic (technology-only) enrichment job for a website."""
        logger.info(f"Submitting basic enrichment job for {request.website_url}")
        return await self._submit(ENRICH_PATH, {
            "websiteUrl": request.website_url,
            "options": request.options.model_dump(by_alias=True),
        })

    async def submit_enhanced_enrichment(self, request: EnhancedEnrichmentRequest) -> JobSubmissionResponse:
        """Submit a full enrichment job for a website."""
        logger.info(f"Submitting enhanced enrichment job for {request.website_url}")
        return await self._submit(ENRICH_PATH, {
            "websiteUrl": request.website_url,
            "options": request.options.model_dump(by_alias=True),
        })

    async def _submit(self, path: str, payload: dict[str, Any]) -> JobSubmissionResponse:
        try:
            client = await self._get_client()
            response = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Job submission to {path} failed: {e}")
            return JobSubmissionResponse(success=False, error=str(e) or "Request failed")

        if response.status_code >= 400:
            error = f"API error: {response.status_code} {response.reason_phrase} {response.text}".strip()
            logger.error(f"Job submission to {path} rejected: {error}")
            return JobSubmissionResponse(success=False, error=error)

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error(f"Job submission to {path} returned a non-JSON body")
            return JobSubmissionResponse(success=False, error="Invalid JSON in submission response")

        success = bool(data.get("success"))
        result = JobSubmissionResponse(
            success=success,
            job_id=str(data.get("jobId") or "") if success else "",
            message=_as_text(data.get("message")),
            error=_as_text(data.get("error")),
            poll_url=_as_text(data.get("pollUrl")),
            position=_as_number(data.get("position"), int),
            estimated_wait_time=_as_number(data.get("estimatedWaitTime"), float),
        )

        if not result.success:
            logger.warning(f"Job submission to {path} was refused: {result.error or result.message}")
            return result

        if not result.job_id:
            logger.error(f"Job submission to {path} returned no job ID")
            return JobSubmissionResponse(success=False, error="Submission response contained no job ID")

        logger.info(f"Job submitted: {result.job_id} (position: {result.position})")
        return result


# =============================================================================
# Singleton instance
# =============================================================================

_job_submitter: JobSubmitter | None = None


def get_job_submitter() -> JobSubmitter:
    """Get singleton job submitter instance."""
    global _job_submitter
    if _job_submitter is None:
        settings = get_settings()
        _job_submitter = JobSubmitter(
            base_url=settings.marketing_api_url,
            bypass_secret=settings.marketing_bypass_secret,
        )
    return _job_submitter


async def close_job_submitter() -> None:
    """Close the singleton submitter, if created."""
    if _job_submitter is not None:
        await _job_submitter.close()
