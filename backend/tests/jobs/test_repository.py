"""Tests for the job repository."""

from bizfinder.jobs.models import create_enrichment_job, create_keyword_generation_job
from bizfinder.jobs.repository import JobRepository, get_job_repository
from bizfinder.jobs.schemas import EnrichmentOptions, JobStatus, JobType


class TestJobRepository:
    """Test job bookkeeping."""

    async def test_add_and_get_job(self, job_repository):
        """Should store a queued job under the external job ID."""
        await job_repository.add_job(create_keyword_generation_job("job-1", "Solar", poll_url="/api/jobs/job-1"))

        job = await job_repository.get_job("job-1")

        assert job["type"] == "keyword-generation"
        assert job["status"] == "queued"
        assert job["progress"] == 0
        assert job["metadata"] == {"industry": "Solar", "poll_failures": 0}
        assert job["completed_at"] is None

    async def test_get_unknown_job(self, job_repository):
        """Should return None for an unknown job."""
        assert await job_repository.get_job("missing") is None

    async def test_cached_job_is_a_copy(self, job_repository):
        """Should not let callers mutate the cached job."""
        await job_repository.add_job(create_keyword_generation_job("job-1", "Solar"))

        job = await job_repository.get_job("job-1")
        job["status"] = "completed"

        assert (await job_repository.get_job("job-1"))["status"] == "queued"

    async def test_update_stamps_completed_at_once(self, job_repository):
        """Should stamp completed_at on the first terminal status only."""
        await job_repository.add_job(create_keyword_generation_job("job-1", "Solar"))

        completed = await job_repository.update_job("job-1", {"status": JobStatus.COMPLETED, "progress": 100})
        again = await job_repository.update_job("job-1", {"status": JobStatus.FAILED, "completed_at": None})

        assert completed["status"] == "completed"
        assert completed["completed_at"] is not None
        assert again["status"] == "failed"
        assert again["completed_at"] == completed["completed_at"]

    async def test_sees_writes_from_another_repository(self, mock_db):
        """Should never serve a cached job another worker has since updated."""
        worker_a = JobRepository(mock_db)
        worker_b = JobRepository(mock_db)
        await worker_a.add_job(create_keyword_generation_job("job-1", "Solar"))
        assert (await worker_a.get_job("job-1"))["status"] == "queued"

        await worker_b.update_job("job-1", {"status": JobStatus.COMPLETED, "progress": 100})
        stamped = (await mock_db["jobs"].find_one({"_id": "job-1"}))["completed_at"]

        seen = await worker_a.get_job("job-1")
        again = await worker_a.update_job("job-1", {"status": JobStatus.COMPLETED, "result": {"keywords": []}})

        assert seen["status"] == "completed"
        assert seen["progress"] == 100
        assert again["result"] == {"keywords": []}
        assert (await mock_db["jobs"].find_one({"_id": "job-1"}))["completed_at"] == stamped

    async def test_forgets_job_deleted_by_another_repository(self, mock_db):
        """Should return None once another worker deleted a cached job."""
        worker_a = JobRepository(mock_db)
        await worker_a.add_job(create_keyword_generation_job("job-1", "Solar"))
        await worker_a.get_job("job-1")

        await JobRepository(mock_db).delete_job("job-1")

        assert await worker_a.get_job("job-1") is None

    async def test_non_terminal_update_keeps_completed_at_empty(self, job_repository):
        """Should not stamp completed_at for progress updates."""
        await job_repository.add_job(create_keyword_generation_job("job-1", "Solar"))

        job = await job_repository.update_job("job-1", {"status": "processing", "progress": 30})

        assert job["progress"] == 30
        assert job["completed_at"] is None

    async def test_update_unknown_job(self, job_repository):
        """Should return None when updating an unknown job."""
        assert await job_repository.update_job("missing", {"progress": 10}) is None

    async def test_jobs_needing_processing_excludes_terminal(self, job_repository):
        """Should return only queued, processing and active jobs."""
        for job_id in ("a", "b", "c"):
            await job_repository.add_job(create_keyword_generation_job(job_id, "Solar"))
        await job_repository.update_job("b", {"status": "completed"})
        await job_repository.update_job("c", {"status": "active"})

        jobs = await job_repository.get_jobs_needing_processing()

        assert sorted(job["_id"] for job in jobs) == ["a", "c"]

    async def test_list_and_count(self, job_repository):
        """Should filter by type and status and count both."""
        await job_repository.add_job(create_keyword_generation_job("k-1", "Solar"))
        await job_repository.add_job(create_enrichment_job("e-1", "https://acme.com", options=EnrichmentOptions()))
        await job_repository.add_job(create_enrichment_job(
            "e-2", "https://bolt.com", options=EnrichmentOptions.enhanced(), enhanced=True,
        ))
        await job_repository.update_job("e-1", {"status": "failed", "error": "boom"})

        basic = await job_repository.list_jobs(job_type=JobType.BASIC_ENRICHMENT)
        failed = await job_repository.list_jobs(status=JobStatus.FAILED)
        by_type = await job_repository.count_by_type()
        by_status = await job_repository.count_by_status()

        assert [job["_id"] for job in basic] == ["e-1"]
        assert [job["_id"] for job in failed] == ["e-1"]
        assert by_type == {"keyword-generation": 1, "basic-enrichment": 1, "enhanced-enrichment": 1}
        assert by_status["queued"] == 2
        assert by_status["failed"] == 1

    async def test_get_jobs_by_industry(self, job_repository):
        """Should find keyword jobs by industry."""
        await job_repository.add_job(create_keyword_generation_job("k-1", "Solar"))
        await job_repository.add_job(create_keyword_generation_job("k-2", "Roofing"))

        jobs = await job_repository.get_jobs_by_industry("Roofing")

        assert [job["_id"] for job in jobs] == ["k-2"]

    async def test_delete_job(self, job_repository):
        """Should delete the job and forget the cached copy."""
        await job_repository.add_job(create_keyword_generation_job("job-1", "Solar"))

        assert await job_repository.delete_job("job-1") is True
        assert await job_repository.get_job("job-1") is None
        assert await job_repository.delete_job("job-1") is False

    async def test_enhanced_job_stores_options(self, job_repository):
        """Should store the enrichment options with the job."""
        job = await job_repository.add_job(create_enrichment_job(
            "e-1", "https://acme.com", options=EnrichmentOptions.enhanced(), enhanced=True,
        ))

        assert job["type"] == "enhanced-enrichment"
        assert job["metadata"]["options"]["basic_mode"] is False
        assert job["metadata"]["website_url"] == "https://acme.com"


async def test_get_job_repository_is_shared_per_database(mock_db):
    """Should reuse one repository per database."""
    assert get_job_repository(mock_db) is get_job_repository(mock_db)
