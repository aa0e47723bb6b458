"""Job schemas (request/response models)."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================

class JobType(str, Enum):
    """Kind of external long-running job."""
    KEYWORD_GENERATION = "keyword-generation"
    BASIC_ENRICHMENT = "basic-enrichment"
    ENHANCED_ENRICHMENT = "enhanced-enrichment"


class JobStatus(str, Enum):
    """Job lifecycle status."""
    QUEUED = "queued"
    PROCESSING = "processing"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}
ACTIVE_STATUSES = [JobStatus.QUEUED.value, JobStatus.PROCESSING.value, JobStatus.ACTIVE.value]


# =============================================================================
# Submission
# =============================================================================

class EnrichmentOptions(BaseModel):
    """Options forwarded to the enrichment API (camelCase on the wire)."""
    include_staff_enrichment: bool = False
    include_external_enrichment: bool = False
    include_intelligence: bool = False
    include_technology_extraction: bool = True
    basic_mode: bool = True
    max_html_length: int = 50000

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def enhanced(cls) -> "EnrichmentOptions":
        return cls(
            include_staff_enrichment=True,
            include_external_enrichment=True,
            include_intelligence=True,
            include_technology_extraction=True,
            basic_mode=False,
        )


class KeywordGenerationRequest(BaseModel):
    """Generate search keywords for an industry."""
    industry: str = Field(..., min_length=1)


class BasicEnrichmentRequest(BaseModel):
    website_url: str = Field(..., min_length=1)
    options: EnrichmentOptions = Field(default_factory=EnrichmentOptions)


class EnhancedEnrichmentRequest(BaseModel):
    website_url: str = Field(..., min_length=1)
    options: EnrichmentOptions = Field(default_factory=EnrichmentOptions.enhanced)


class EnrichmentJobRequest(BaseModel):
    """API request to enrich one website (basic unless ``enhanced``)."""
    website_url: str = Field(..., min_length=1)
    enhanced: bool = False
    options: EnrichmentOptions | None = None


class JobSubmissionResponse(BaseModel):
    """Outcome of a submission to the external job API."""
    success: bool
    job_id: str = ""
    message: str | None = None
    error: str | None = None
    poll_url: str | None = None
    position: int | None = None
    estimated_wait_time: float | None = None


# =============================================================================
# Jobs
# =============================================================================

class JobOut(BaseModel):
    """Job as returned by the API."""
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    type: JobType
    status: JobStatus
    progress: int = 0
    submitted_at: datetime
    completed_at: datetime | None = None
    poll_url: str | None = None
    position: int | None = None
    estimated_wait_time: float | None = None
    metadata: dict[str, Any] = {}
    result: Any = None
    error: str | None = None
    has_result_errors: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JobSubmitResult(BaseModel):
    success: bool
    job: JobOut | None = None
    error: str | None = None


class JobListResponse(BaseModel):
    jobs: list[JobOut]
    total: int
    counts_by_type: dict[str, int]
    counts_by_status: dict[str, int]


class JobUpdateRequest(BaseModel):
    """Operator update of a job."""
    status: JobStatus | None = None
    progress: int | None = Field(None, ge=0, le=100)
    result: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class ProcessJobsResponse(BaseModel):
    processed: int
