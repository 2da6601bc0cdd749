import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy.orm import Session

from babypeek.core.config import settings
from babypeek.models.job import Job
from babypeek.models.preference import Preference
from babypeek.models.purchase import Purchase
from babypeek.models.result import Result
from babypeek.pipeline.stages import JobStatus
from babypeek.services.errors import Conflict, SessionExpired, ValidationFailed
from babypeek.storage.base import Storage, result_prefix, upload_prefix
from babypeek.utils.metrics import jobs_created_total

logger = logging.getLogger(__name__)


def tokens_match(expected: str | None, provided: str | None) -> bool:
    """Constant-time credential compare; missing values never match."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


class JobService:
    def __init__(self, db: Session):
        self.db = db

    def create_job(
        self,
        email: str,
        source_image_ref: str,
        variant_count: int | None = None,
        job_id: str | None = None,
    ) -> Job:
        if not source_image_ref:
            raise ValidationFailed("source_image_ref is required")
        count = variant_count if variant_count is not None else len(settings.variant_descriptors_list)
        if count < 1:
            raise ValidationFailed("variant_count must be at least 1")
        job_kwargs: dict = {
            "email": email,
            "session_token": secrets.token_urlsafe(settings.session_token_bytes),
            "source_image_ref": source_image_ref,
            "status": JobStatus.PENDING.value,
            "stage": None,
            "progress": 0,
            "workflow_run_ref": str(uuid4()),
            "variant_count": count,
            "failed_variants": [],
            "stage_history": [],
            "expires_at": datetime.now(timezone.utc) + timedelta(days=settings.job_retention_days),
        }
        if job_id is not None:
            job_kwargs["id"] = job_id
        job = Job(**job_kwargs)
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        jobs_created_total.inc()
        logger.info(
            "job_created",
            extra={"job_id": job.id, "workflow_run_ref": job.workflow_run_ref},
        )
        return job

    def get(self, job_id: str) -> Job | None:
        return self.db.query(Job).filter(Job.id == job_id).one_or_none()

    def get_by_session_token(self, session_token: str) -> Job | None:
        if not session_token:
            return None
        return self.db.query(Job).filter(Job.session_token == session_token).one_or_none()

    def get_for_session(self, job_id: str, session_token: str | None) -> Job:
        """Owner lookup. Unknown job and wrong token raise the same SessionExpired."""
        job = self.get(job_id) if session_token else None
        if job is None or not tokens_match(job.session_token, session_token):
            raise SessionExpired()
        return job

    def reset_for_retry(self, job: Job) -> Job:
        """
        Failed job -> pending under a fresh workflow run.
        Results stay (append-only) and count as terminated variants on the re-run.
        """
        job = (
            self.db.query(Job)
            .filter(Job.id == job.id)
            .with_for_update()
            .one()
        )
        if job.status != JobStatus.FAILED.value:
            self.db.rollback()
            raise Conflict("Only failed jobs can be retried.")
        previous_run = job.workflow_run_ref
        job.status = JobStatus.PENDING.value
        job.stage = None
        job.progress = 0
        job.error_message = None
        job.failed_variants = []
        job.stage_history = []
        job.workflow_run_ref = str(uuid4())
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(
            "job_retry_reset",
            extra={
                "job_id": job.id,
                "workflow_run_ref": job.workflow_run_ref,
                "reason": f"previous_run={previous_run}",
            },
        )
        return job

    def delete_job_data(self, job: Job, storage: Storage) -> int:
        """
        Remove everything stored for a job: objects by prefix, preferences, results
        and the job itself. Purchases are kept for accounting with PII cleared.
        Returns the number of storage objects deleted.
        """
        job_id = job.id
        deleted = storage.delete_prefix(upload_prefix(job_id))
        deleted += storage.delete_prefix(result_prefix(job_id))

        purchases = self.db.query(Purchase).filter(Purchase.job_id == job_id).all()
        for purchase in purchases:
            purchase.purchaser_email = None
            purchase.gift_recipient_email = None
            purchase.job_id = None
            self.db.add(purchase)
        self.db.flush()

        self.db.query(Preference).filter(Preference.job_id == job_id).delete(synchronize_session=False)
        self.db.query(Result).filter(Result.job_id == job_id).delete(synchronize_session=False)
        self.db.query(Job).filter(Job.id == job_id).delete(synchronize_session=False)
        self.db.commit()
        logger.info(
            "job_data_deleted",
            extra={"job_id": job_id, "deleted": deleted, "count": len(purchases)},
        )
        return deleted
