"""Job processor - polls the external API and advances job state.

One tick polls every job that is not yet terminal. The ticker runs as an
asyncio task started and stopped with the application; the same tick can
also be triggered through the API, so any client cadence is safe.
"""

import asyncio
import logging
from typing import Any

import httpx

from bizfinder.config import get_settings
from bizfinder.core.interfaces import IJobRepository
from bizfinder.jobs.payloads import decode_result, parse_job_result
from bizfinder.jobs.schemas import TERMINAL_STATUSES, JobStatus

logger = logging.getLogger(__name__)

BYPASS_HEADER = "x-vercel-protection-bypass"

# Locally simulated progress while the external API gives no signal
SIMULATED_PROGRESS_STEP = 15
SIMULATED_PROGRESS_CAP = 90

NON_TERMINAL_REPORTED = {JobStatus.QUEUED.value, JobStatus.PROCESSING.value, JobStatus.ACTIVE.value}


class JobProcessor:
    """Polls external jobs until they reach a terminal state."""

    def __init__(
        self,
        repository: IJobRepository,
        base_url: str,
        bypass_secret: str = "",
        poll_interval: float = 2.0,
        max_retries: int = 3,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            repository: Job repository
            base_url: Base URL the jobs' relative poll URLs resolve against
            bypass_secret: Deployment-protection bypass token, sent when set
            poll_interval: Seconds between ticks of the background loop
            max_retries: Consecutive poll failures before a job is marked failed
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._repository = repository
        self._base_url = base_url.rstrip("/")
        self._bypass_secret = bypass_secret
        self._poll_interval = poll_interval
        self._max_retries = max_retries
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._task: asyncio.Task | None = None

    @property
    def repository(self) -> IJobRepository:
        return self._repository

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
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
        """Stop the ticker and close the HTTP client."""
        await self.stop()
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Background ticker
    # =========================================================================

    def start(self) -> None:
        """Start the background polling loop."""
        if self.is_running:
            logger.info("Job processor already running")
            return

        self._task = asyncio.create_task(self._run())
        logger.info(f"Job processor started (interval {self._poll_interval}s)")

    async def stop(self) -> None:
        """Cancel the background polling loop."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Job processor stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.process_jobs()
            except Exception as e:
                logger.error(f"Error in job processing loop: {e}")
            await asyncio.sleep(self._poll_interval)

    # =========================================================================
    # Polling
    # =========================================================================

    async def process_jobs(self) -> int:
        """Poll every job needing processing once.

        Returns:
            Number of jobs polled
        """
        jobs = await self._repository.get_jobs_needing_processing()
        if not jobs:
            return 0

        logger.info(f"Processing {len(jobs)} jobs")
        for job in jobs:
            try:
                await self.process_job(job)
            except Exception as e:
                logger.error(f"Error processing job {job['_id']}: {e}")
        return len(jobs)

    async def process_job(self, job: dict[str, Any]) -> dict[str, Any]:
        """Poll one job and apply what the external API reports.

        Terminal jobs are returned untouched. Network and unexpected HTTP
        errors only count towards ``max_retries``.

        Returns:
            The job after the update
        """
        job_id = job["_id"]

        if job["status"] in TERMINAL_STATUSES:
            return job

        poll_url = job.get("poll_url")
        if not poll_url:
            logger.warning(f"No poll URL for job {job_id}")
            return job

        logger.info(f"Polling {job['type']} job {job_id}")

        try:
            client = await self._get_client()
            response = await client.get(poll_url)
        except httpx.HTTPError as e:
            return await self._record_poll_failure(job, f"Poll request failed: {e}")

        if response.status_code == 404:
            # Not yet visible on the external side
            return await self._apply(job, self._simulated_progress(job))

        if response.status_code != 200:
            return await self._record_poll_failure(job, f"Poll returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return await self._record_poll_failure(job, "Poll returned an invalid JSON body")

        if data.get("success") is False and not data.get("error") and data.get("status") not in TERMINAL_STATUSES:
            return await self._record_poll_failure(job, str(data.get("message") or "Poll reported success=false"))

        return await self._apply(job, self._updates_from_poll(job, data))

    def _updates_from_poll(self, job: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """Translate a poll response into job updates."""
        reported_status = data.get("status")

        if data.get("error") or reported_status == JobStatus.FAILED.value:
            return {
                "status": JobStatus.FAILED.value,
                "error": str(data.get("error") or "External job failed"),
            }

        if data.get("result") is not None or reported_status == JobStatus.COMPLETED.value:
            result = decode_result(data.get("result"))
            payload = parse_job_result(result)
            if payload.has_errors:
                logger.warning(
                    f"Job {job['_id']} completed with errors in its {payload.kind} result: "
                    f"{payload.error_message or 'success=false'}"
                )
            return {
                "status": JobStatus.COMPLETED.value,
                "progress": 100,
                "result": result,
                "error": None,
            }

        updates = self._simulated_progress(job)

        progress = data.get("progress")
        if isinstance(progress, (int, float)) and not isinstance(progress, bool):
            updates["progress"] = max(0, min(int(progress), 99))
        if reported_status in NON_TERMINAL_REPORTED:
            updates["status"] = reported_status
        if data.get("position") is not None:
            updates["position"] = data["position"]
        if data.get("estimatedWaitTime") is not None:
            updates["estimated_wait_time"] = data["estimatedWaitTime"]

        return updates

    def _simulated_progress(self, job: dict[str, Any]) -> dict[str, Any]:
        progress = min((job.get("progress") or 0) + SIMULATED_PROGRESS_STEP, SIMULATED_PROGRESS_CAP)
        updates: dict[str, Any] = {"progress": max(progress, job.get("progress") or 0)}
        if progress >= SIMULATED_PROGRESS_CAP:
            updates["status"] = JobStatus.PROCESSING.value
        return updates

    async def _apply(self, job: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
        metadata = job.get("metadata") or {}
        if metadata.get("poll_failures"):
            updates["metadata"] = {**metadata, "poll_failures": 0}

        updated = await self._repository.update_job(job["_id"], updates)
        if updated is None:
            logger.warning(f"Job {job['_id']} disappeared while polling")
            return job

        if updated["status"] in TERMINAL_STATUSES:
            logger.info(f"Job {job['_id']} is {updated['status']}")
        return updated

    async def _record_poll_failure(self, job: dict[str, Any], error: str) -> dict[str, Any]:
        metadata = job.get("metadata") or {}
        failures = (metadata.get("poll_failures") or 0) + 1
        updates: dict[str, Any] = {"metadata": {**metadata, "poll_failures": failures}}

        if failures >= self._max_retries:
            logger.error(f"Job {job['_id']} failed after {failures} poll attempts: {error}")
            updates["status"] = JobStatus.FAILED.value
            updates["error"] = f"Polling failed after {failures} attempts: {error}"
        else:
            logger.warning(f"Poll attempt {failures}/{self._max_retries} for job {job['_id']} failed: {error}")

        updated = await self._repository.update_job(job["_id"], updates)
        return updated or job


# =============================================================================
# Singleton instance
# =============================================================================

_job_processor: JobProcessor | None = None


def get_job_processor(repository: IJobRepository) -> JobProcessor:
    """Get the processor bound to ``repository``."""
    global _job_processor
    if _job_processor is None or _job_processor.repository is not repository:
        settings = get_settings()
        _job_processor = JobProcessor(
            repository=repository,
            base_url=settings.marketing_api_url,
            bypass_secret=settings.marketing_bypass_secret,
            poll_interval=settings.job_poll_interval_seconds,
            max_retries=settings.job_poll_max_retries,
        )
    return _job_processor


async def close_job_processor() -> None:
    """Stop and close the singleton processor, if created."""
    if _job_processor is not None:
        await _job_processor.close()
