"""Job MongoDB document factories."""

from datetime import datetime, timezone
from typing import Any

from bizfinder.jobs.schemas import EnrichmentOptions, JobStatus, JobType


def create_job_document(
    job_id: str,
    job_type: JobType,
    metadata: dict[str, Any],
    poll_url: str | None = None,
    position: int | None = None,
    estimated_wait_time: float | None = None,
) -> dict[str, Any]:
    """Create a queued job document.

    The external system's job ID is used as ``_id`` so polls and operator
    actions address the same record.
    """
    return {
        "_id": job_id,
        "type": job_type.value,
        "status": JobStatus.QUEUED.value,
        "progress": 0,
        "submitted_at": datetime.now(timezone.utc),
        "completed_at": None,
        "poll_url": poll_url,
        "position": position,
        "estimated_wait_time": estimated_wait_time,
        "metadata": {**metadata, "poll_failures": 0},
        "result": None,
        "error": None,
        "version": 0,
    }


def create_keyword_generation_job(
    job_id: str,
    industry: str,
    poll_url: str | None = None,
    position: int | None = None,
    estimated_wait_time: float | None = None,
) -> dict[str, Any]:
    """Create a keyword generation job document."""
    return create_job_document(
        job_id,
        JobType.KEYWORD_GENERATION,
        {"industry": industry},
        poll_url=poll_url,
        position=position,
        estimated_wait_time=estimated_wait_time,
    )


def create_enrichment_job(
    job_id: str,
    website_url: str,
    options: EnrichmentOptions | None = None,
    enhanced: bool = False,
    poll_url: str | None = None,
    position: int | None = None,
    estimated_wait_time: float | None = None,
) -> dict[str, Any]:
    """Create a basic or enhanced enrichment job document."""
    job_type = JobType.ENHANCED_ENRICHMENT if enhanced else JobType.BASIC_ENRICHMENT
    return create_job_document(
        job_id,
        job_type,
        {
            "website_url": website_url,
            "options": options.model_dump() if options else None,
        },
        poll_url=poll_url,
        position=position,
        estimated_wait_time=estimated_wait_time,
    )
