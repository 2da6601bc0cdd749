import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from babypeek.models.job import Job
from babypeek.services.jobs.service import JobService
from babypeek.storage.base import Storage

logger = logging.getLogger(__name__)


class CleanupService:
    """Retention: jobs past expires_at are removed, storage objects first, then rows."""

    def __init__(self, db: Session, storage: Storage) -> None:
        self.db = db
        self.storage = storage

    def _expired(self, now: datetime, limit: int | None) -> list[Job]:
        query = self.db.query(Job).filter(Job.expires_at <= now).order_by(Job.expires_at.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def preview_expired(self, now: datetime | None = None) -> dict[str, Any]:
        """Dry-run: how many jobs would be removed."""
        now = now or datetime.now(timezone.utc)
        return {"jobs_count": len(self._expired(now, None))}

    def cleanup_expired(self, now: datetime | None = None, limit: int | None = 500) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        jobs = self._expired(now, limit)
        service = JobService(self.db)
        deleted_jobs = 0
        deleted_objects = 0
        errors: list[str] = []
        for job in jobs:
            job_id = job.id
            try:
                deleted_objects += service.delete_job_data(job, self.storage)
                deleted_jobs += 1
            except Exception as e:
                self.db.rollback()
                logger.exception("cleanup_job_failed", extra={"job_id": job_id})
                errors.append(f"{job_id}: {e}")
        logger.info(
            "cleanup_expired_done",
            extra={"count": deleted_jobs, "deleted": deleted_objects},
        )
        return {
            "deleted_jobs": deleted_jobs,
            "deleted_objects": deleted_objects,
            "errors": errors,
        }
