"""Jobs API router (submit, inspect and poll external long-running jobs)."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.database import get_database
from bizfinder.jobs.models import create_enrichment_job, create_keyword_generation_job
from bizfinder.jobs.payloads import result_has_errors
from bizfinder.jobs.processor import JobProcessor, get_job_processor
from bizfinder.jobs.repository import JobRepository, get_job_repository
from bizfinder.jobs.schemas import (
    BasicEnrichmentRequest,
    EnhancedEnrichmentRequest,
    EnrichmentJobRequest,
    JobListResponse,
    JobOut,
    JobStatus,
    JobSubmitResult,
    JobType,
    JobUpdateRequest,
    KeywordGenerationRequest,
    ProcessJobsResponse,
)
from bizfinder.jobs.submitter import JobSubmitter, get_job_submitter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Dependencies
# =============================================================================

def get_repository(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> JobRepository:
    """Get job repository instance."""
    return get_job_repository(db)


def get_submitter() -> JobSubmitter:
    """Get job submitter instance."""
    return get_job_submitter()


def get_processor(
    repository: Annotated[JobRepository, Depends(get_repository)],
) -> JobProcessor:
    """Get job processor instance."""
    return get_job_processor(repository)


def to_job_out(job: dict[str, Any]) -> JobOut:
    """Convert a job document, flagging completed jobs whose payload reports errors."""
    job_out = JobOut(**job)
    job_out.has_result_errors = job_out.status == JobStatus.COMPLETED and result_has_errors(job_out.result)
    return job_out


def _submission_failed(error: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=JobSubmitResult(success=False, error=error or "Job submission failed").model_dump(mode="json"),
    )


async def _get_job_or_404(repository: JobRepository, job_id: str) -> dict[str, Any]:
    job = await repository.get_job(job_id)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return job


# =============================================================================
# Submission
# =============================================================================

@router.post("/keyword-generation", response_model=JobSubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_keyword_generation(
    request: KeywordGenerationRequest,
    repository: Annotated[JobRepository, Depends(get_repository)],
    submitter: Annotated[JobSubmitter, Depends(get_submitter)],
):
    """Submit a keyword generation job and start tracking it."""
    submission = await submitter.submit_keyword_generation(request)
    if not submission.success:
        return _submission_failed(submission.error)

    job = await repository.add_job(
        create_keyword_generation_job(
            submission.job_id,
            request.industry,
            poll_url=submission.poll_url,
            position=submission.position,
            estimated_wait_time=submission.estimated_wait_time,
        )
    )
    return JobSubmitResult(success=True, job=to_job_out(job))


@router.post("/enrichment", response_model=JobSubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_enrichment(
    request: EnrichmentJobRequest,
    repository: Annotated[JobRepository, Depends(get_repository)],
    submitter: Annotated[JobSubmitter, Depends(get_submitter)],
):
    """Submit a basic or enhanced website enrichment job and start tracking it."""
    if request.enhanced:
        enhanced_request = EnhancedEnrichmentRequest(website_url=request.website_url)
        if request.options:
            enhanced_request.options = request.options
        submission = await submitter.submit_enhanced_enrichment(enhanced_request)
        options = enhanced_request.options
    else:
        basic_request = BasicEnrichmentRequest(website_url=request.website_url)
        if request.options:
            basic_request.options = request.options
        submission = await submitter.submit_basic_enrichment(basic_request)
        options = basic_request.options

    if not submission.success:
        return _submission_failed(submission.error)

    job = await repository.add_job(
        create_enrichment_job(
            submission.job_id,
            request.website_url,
            options=options,
            enhanced=request.enhanced,
            poll_url=submission.poll_url,
            position=submission.position,
            estimated_wait_time=submission.estimated_wait_time,
        )
    )
    return JobSubmitResult(success=True, job=to_job_out(job))


# =============================================================================
# Tracking
# =============================================================================

@router.get("", response_model=JobListResponse)
async def list_jobs(
    repository: Annotated[JobRepository, Depends(get_repository)],
    job_type: JobType | None = Query(None, alias="type"),
    job_status: JobStatus | None = Query(None, alias="status"),
) -> JobListResponse:
    """List jobs, newest first, with per-type and per-status counts."""
    jobs = await repository.list_jobs(job_type=job_type, status=job_status)
    return JobListResponse(
        jobs=[to_job_out(job) for job in jobs],
        total=len(jobs),
        counts_by_type=await repository.count_by_type(),
        counts_by_status=await repository.count_by_status(),
    )


@router.post("/process", response_model=ProcessJobsResponse)
async def process_jobs(
    processor: Annotated[JobProcessor, Depends(get_processor)],
) -> ProcessJobsResponse:
    """Run one polling tick over every job needing processing."""
    processed = await processor.process_jobs()
    return ProcessJobsResponse(processed=processed)


@router.get("/{job_id}", response_model=JobOut)
async def get_job(
    job_id: str,
    repository: Annotated[JobRepository, Depends(get_repository)],
) -> JobOut:
    """Get a job by ID."""
    job = await _get_job_or_404(repository, job_id)
    return to_job_out(job)


@router.patch("/{job_id}", response_model=JobOut)
async def update_job(
    job_id: str,
    request: JobUpdateRequest,
    repository: Annotated[JobRepository, Depends(get_repository)],
) -> JobOut:
    """Apply an operator update to a job."""
    await _get_job_or_404(repository, job_id)

    updates = request.model_dump(exclude_unset=True)
    job = await repository.update_job(job_id, updates)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return to_job_out(job)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: str,
    repository: Annotated[JobRepository, Depends(get_repository)],
) -> None:
    """Permanently delete a job."""
    deleted = await repository.delete_job(job_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )


@router.post("/{job_id}/poll", response_model=JobOut)
async def poll_job(
    job_id: str,
    repository: Annotated[JobRepository, Depends(get_repository)],
    processor: Annotated[JobProcessor, Depends(get_processor)],
) -> JobOut:
    """Poll one job now. Polling a terminal job is a no-op."""
    job = await _get_job_or_404(repository, job_id)
    job = await processor.process_job(job)
    return to_job_out(job)
