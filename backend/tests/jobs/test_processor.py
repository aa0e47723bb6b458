"""Tests for the job processor."""

import json

import httpx

from bizfinder.jobs.models import create_enrichment_job, create_keyword_generation_job
from bizfinder.jobs.processor import SIMULATED_PROGRESS_CAP, SIMULATED_PROGRESS_STEP, JobProcessor


class PollServer:
    """Scripted poll responses, counting requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_processor(job_repository, server, max_retries: int = 3) -> JobProcessor:
    return JobProcessor(
        repository=job_repository,
        base_url="https://marketing.test",
        max_retries=max_retries,
        transport=httpx.MockTransport(server),
    )


async def queued_job(job_repository, job_id: str = "job-1") -> dict:
    return await job_repository.add_job(
        create_keyword_generation_job(job_id, "Solar", poll_url=f"/api/jobs/{job_id}")
    )


class TestProcessJob:
    """Test process_job method."""

    async def test_completes_job_with_decoded_result(self, job_repository):
        """Should mark the job completed with the decoded result."""
        result = {"keywords": ["solar installer", "solar panels"]}
        server = PollServer(httpx.Response(200, json={
            "success": True,
            "status": "completed",
            "result": json.dumps(result),
        }))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "completed"
        assert updated["progress"] == 100
        assert updated["result"] == result
        assert updated["completed_at"] is not None
        assert str(server.requests[0].url) == "https://marketing.test/api/jobs/job-1"

    async def test_completes_job_whose_result_reports_errors(self, job_repository, caplog):
        """Should complete the job and log the error embedded in its result."""
        server = PollServer(httpx.Response(200, json={
            "success": True,
            "status": "completed",
            "result": {"result": {"success": False, "data": {"error": "Timeout fetching page"}}},
        }))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        with caplog.at_level("WARNING", logger="bizfinder.jobs.processor"):
            updated = await processor.process_job(job)

        assert updated["status"] == "completed"
        assert updated["error"] is None
        assert "Timeout fetching page" in caplog.text
        assert "enrichment result" in caplog.text

    async def test_applies_reported_progress(self, job_repository):
        """Should take progress, status and queue position from the poll."""
        server = PollServer(httpx.Response(200, json={
            "success": True,
            "status": "processing",
            "progress": 40,
            "position": 1,
            "estimatedWaitTime": 20,
        }))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "processing"
        assert updated["progress"] == 40
        assert updated["position"] == 1
        assert updated["estimated_wait_time"] == 20
        assert updated["completed_at"] is None

    async def test_reported_progress_never_reaches_100_before_completion(self, job_repository):
        """Should cap reported progress below 100 while the job runs."""
        server = PollServer(httpx.Response(200, json={"status": "active", "progress": 100}))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "active"
        assert updated["progress"] == 99

    async def test_marks_explicit_failure(self, job_repository):
        """Should fail the job when the external API reports an error."""
        server = PollServer(httpx.Response(200, json={"success": False, "status": "failed", "error": "Site unreachable"}))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "failed"
        assert updated["error"] == "Site unreachable"
        assert updated["completed_at"] is not None

    async def test_simulates_progress_when_not_found(self, job_repository):
        """Should advance progress locally while the job is not visible yet."""
        server = PollServer(httpx.Response(404))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "queued"
        assert updated["progress"] == SIMULATED_PROGRESS_STEP

    async def test_simulated_progress_is_capped(self, job_repository):
        """Should stop simulated progress at the cap and mark the job processing."""
        server = PollServer(httpx.Response(404))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        for _ in range(10):
            job = await processor.process_job(job)

        assert job["progress"] == SIMULATED_PROGRESS_CAP
        assert job["status"] == "processing"

    async def test_leaves_terminal_job_untouched(self, job_repository):
        """Should not poll or modify a completed job."""
        server = PollServer(httpx.Response(200, json={"status": "failed", "error": "late"}))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)
        completed = await job_repository.update_job(job["_id"], {"status": "completed", "progress": 100})

        result = await processor.process_job(completed)

        assert result == completed
        assert server.requests == []
        assert (await job_repository.get_job(job["_id"]))["status"] == "completed"

    async def test_fails_after_max_retries(self, job_repository):
        """Should count poll failures and fail the job at the retry limit."""
        server = PollServer(httpx.Response(500))
        processor = make_processor(job_repository, server, max_retries=3)
        job = await queued_job(job_repository)

        job = await processor.process_job(job)
        assert job["status"] == "queued"
        assert job["metadata"]["poll_failures"] == 1

        job = await processor.process_job(job)
        job = await processor.process_job(job)

        assert job["status"] == "failed"
        assert job["error"].startswith("Polling failed after 3 attempts")

    async def test_transport_errors_count_as_poll_failures(self, job_repository):
        """Should treat network errors as poll failures."""
        server = PollServer(httpx.ConnectError("connection refused"))
        processor = make_processor(job_repository, server, max_retries=2)
        job = await queued_job(job_repository)

        job = await processor.process_job(job)
        job = await processor.process_job(job)

        assert job["status"] == "failed"

    async def test_success_false_without_error_is_a_poll_failure(self, job_repository):
        """Should not fail the job on an ambiguous success=false response."""
        server = PollServer(httpx.Response(200, json={"success": False, "message": "Try later"}))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        updated = await processor.process_job(job)

        assert updated["status"] == "queued"
        assert updated["metadata"]["poll_failures"] == 1

    async def test_successful_poll_resets_failures(self, job_repository):
        """Should reset the failure counter after a good poll."""
        server = PollServer(httpx.Response(500), httpx.Response(200, json={"status": "processing", "progress": 10}))
        processor = make_processor(job_repository, server)
        job = await queued_job(job_repository)

        job = await processor.process_job(job)
        job = await processor.process_job(job)

        assert job["metadata"]["poll_failures"] == 0
        assert job["status"] == "processing"

    async def test_job_without_poll_url_is_skipped(self, job_repository):
        """Should not poll a job that has no poll URL."""
        server = PollServer(httpx.Response(200, json={}))
        processor = make_processor(job_repository, server)
        job = await job_repository.add_job(create_enrichment_job("e-1", "https://acme.com"))

        result = await processor.process_job(job)

        assert result["status"] == "queued"
        assert server.requests == []


class TestProcessJobs:
    """Test process_jobs method."""

    async def test_polls_only_active_jobs(self, job_repository):
        """Should poll each non-terminal job once per tick."""
        server = PollServer(httpx.Response(200, json={"status": "processing", "progress": 50}))
        processor = make_processor(job_repository, server)
        await queued_job(job_repository, "job-1")
        await queued_job(job_repository, "job-2")
        await queued_job(job_repository, "job-3")
        await job_repository.update_job("job-3", {"status": "failed", "error": "x"})

        processed = await processor.process_jobs()

        assert processed == 2
        assert len(server.requests) == 2
        assert (await job_repository.get_job("job-1"))["progress"] == 50

    async def test_returns_zero_without_jobs(self, job_repository):
        """Should do nothing when no job needs processing."""
        processor = make_processor(job_repository, PollServer(httpx.Response(200, json={})))

        assert await processor.process_jobs() == 0


class TestProcessorLifecycle:
    """Test start and stop."""

    async def test_start_and_stop(self, job_repository):
        """Should run the ticker as a task and cancel it on stop."""
        processor = make_processor(job_repository, PollServer(httpx.Response(200, json={})))

        processor.start()
        assert processor.is_running is True

        await processor.close()
        assert processor.is_running is False
