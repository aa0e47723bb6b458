"""Job repository for MongoDB operations.

MongoDB is the source of truth. Each job carries a ``version`` counter that
every write increments; the in-process cache only serves a job whose
version still matches the stored one, which saves re-reading large result
payloads while staying correct across workers.
"""

import copy
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from bizfinder.core.interfaces import IJobRepository
from bizfinder.jobs.schemas import ACTIVE_STATUSES, TERMINAL_STATUSES, JobStatus, JobType

logger = logging.getLogger(__name__)


class JobRepository(IJobRepository):
    """Repository for external job bookkeeping."""

    COLLECTION = "jobs"

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._collection = db[self.COLLECTION]
        self._cache: dict[str, dict[str, Any]] = {}

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._db

    async def ensure_indexes(self) -> None:
        """Create lookup indexes."""
        await self._collection.create_index("status")
        await self._collection.create_index([("type", 1), ("submitted_at", -1)])

    def _remember(self, job: dict[str, Any] | None) -> dict[str, Any] | None:
        if job is None:
            return None
        self._cache[job["_id"]] = copy.deepcopy(job)
        return job

    async def add_job(self, job: dict[str, Any]) -> dict[str, Any]:
        """Persist a newly submitted job."""
        await self._collection.insert_one(job)
        logger.info(f"Job added to store: {job['_id']} ({job['type']})")
        return self._remember(job)

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        """Get a job by ID, reusing the cached copy while its version is current."""
        cached = self._cache.get(job_id)
        if cached is not None:
            stored = await self._collection.find_one({"_id": job_id}, {"version": 1})
            if stored is None:
                self._cache.pop(job_id, None)
                return None
            if stored.get("version") == cached.get("version"):
                return copy.deepcopy(cached)

        job = await self._collection.find_one({"_id": job_id})
        return self._remember(job)

    async def list_jobs(
        self,
        job_type: JobType | None = None,
        status: JobStatus | None = None,
    ) -> list[dict[str, Any]]:
        """Get jobs, newest first, optionally filtered by type and status."""
        query: dict[str, Any] = {}
        if job_type:
            query["type"] = job_type.value
        if status:
            query["status"] = status.value

        cursor = self._collection.find(query).sort("submitted_at", -1)
        jobs = await cursor.to_list(length=None)
        for job in jobs:
            self._remember(job)
        return jobs

    async def get_jobs_by_industry(self, industry: str) -> list[dict[str, Any]]:
        """Get keyword generation jobs for an industry, newest first."""
        cursor = self._collection.find({
            "type": JobType.KEYWORD_GENERATION.value,
            "metadata.industry": industry,
        }).sort("submitted_at", -1)
        return await cursor.to_list(length=None)

    async def get_jobs_needing_processing(self) -> list[dict[str, Any]]:
        """Get all jobs not yet in a terminal state, oldest first."""
        cursor = self._collection.find(
            {"status": {"$in": ACTIVE_STATUSES}}
        ).sort("submitted_at", 1)
        return await cursor.to_list(length=None)

    async def update_job(self, job_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Apply updates to a job.

        ``completed_at`` is stamped on the first transition into a terminal
        status and never moved afterwards.

        Returns:
            The updated job, or None if it does not exist
        """
        update_data = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in updates.items()
            if key not in ("_id", "completed_at", "version")
        }

        if not update_data:
            return await self.get_job(job_id)

        job = None
        if update_data.get("status") in TERMINAL_STATUSES:
            # Matches only while unstamped, so concurrent writers stamp once
            job = await self._collection.find_one_and_update(
                {"_id": job_id, "completed_at": None},
                {
                    "$set": {**update_data, "completed_at": datetime.now(timezone.utc)},
                    "$inc": {"version": 1},
                },
                return_document=True,
            )

        if job is None:
            job = await self._collection.find_one_and_update(
                {"_id": job_id},
                {"$set": update_data, "$inc": {"version": 1}},
                return_document=True,
            )
        if job is None:
            self._cache.pop(job_id, None)
            return None

        logger.info(f"Job updated: {job_id} - {update_data.get('status', job['status'])}")
        return self._remember(job)

    async def delete_job(self, job_id: str) -> bool:
        """Permanently delete a job."""
        self._cache.pop(job_id, None)
        result = await self._collection.delete_one({"_id": job_id})

        if result.deleted_count > 0:
            logger.info(f"Job deleted from store: {job_id}")
        return result.deleted_count > 0

    async def count_by_type(self) -> dict[str, int]:
        """Get job counts per type."""
        return {
            job_type.value: await self._collection.count_documents({"type": job_type.value})
            for job_type in JobType
        }

    async def count_by_status(self) -> dict[str, int]:
        """Get job counts per status."""
        return {
            status.value: await self._collection.count_documents({"status": status.value})
            for status in JobStatus
        }


# =============================================================================
# Singleton instance
# =============================================================================

_job_repository: JobRepository | None = None


def get_job_repository(db: AsyncIOMotorDatabase) -> JobRepository:
    """Get the job repository bound to ``db``.

    One instance is shared so its cache survives across requests and the
    background poller.
    """
    global _job_repository
    if _job_repository is None or _job_repository.db is not db:
        _job_repository = JobRepository(db)
    return _job_repository
