"""
Status endpoint logic: authoritative job state for the session owner.
Side-effect free, safe to poll at any rate.
"""
from sqlalchemy.orm import Session

from babypeek.schemas.jobs import StatusOut
from babypeek.services.jobs.service import JobService
from babypeek.services.purchases.service import PurchaseService
from babypeek.services.results.service import ResultService
from babypeek.storage.base import Storage


class StatusService:
    def __init__(self, db: Session, storage: Storage):
        self.db = db
        self.storage = storage

    def get_status(self, job_id: str, session_token: str | None) -> StatusOut:
        """Raises SessionExpired for a wrong/missing token and for an unknown job alike."""
        job = JobService(self.db).get_for_session(job_id, session_token)

        primary = None
        result_url = None
        if job.primary_result_id:
            results = ResultService(self.db).list_for_job(job.id)
            primary = next((r for r in results if r.id == job.primary_result_id), None)
            if primary is not None:
                decision = PurchaseService(self.db).access_for_job(job, results)
                if decision.is_unlocked(primary.variant_index):
                    result_url = self.storage.sign(primary.result_ref)

        return StatusOut(
            status=job.status,
            stage=job.stage,
            progress=job.progress or 0,
            result_id=job.primary_result_id,
            result_url=result_url,
            preview_url=self.storage.sign(job.preview_ref) if job.preview_ref else None,
            original_url=self.storage.sign(job.source_image_ref) if job.source_image_ref else None,
            prompt_version=primary.variant_descriptor if primary else None,
            error_message=job.error_message,
            updated_at=job.updated_at,
        )
