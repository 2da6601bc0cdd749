import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babypeek.db.session import get_db
from babypeek.pipeline import DEFAULT_FAILURE_MESSAGE, StageEngine, StageError
from babypeek.schemas.jobs import UploadIn, UploadOut
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import JobService
from babypeek.api.deps import http_error
from babypeek.workers.tasks.process_job import process_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["jobs"])


def enqueue_processing(db: Session, job_id: str, workflow_run_ref: str) -> None:
    """Queue the pipeline; a broker failure fails the job so the user can retry."""
    try:
        process_job.apply_async(args=[job_id, workflow_run_ref])
    except Exception:
        logger.exception("process_job_enqueue_failed", extra={"job_id": job_id})
        try:
            StageEngine(db).fail(job_id, DEFAULT_FAILURE_MESSAGE, workflow_run_ref)
        except StageError:
            logger.warning("enqueue_fail_not_applied", extra={"job_id": job_id})


@router.post("/uploads", response_model=UploadOut, status_code=201)
def create_upload(body: UploadIn, db: Session = Depends(get_db)) -> UploadOut:
    try:
        job = JobService(db).create_job(email=body.email, source_image_ref=body.source_image_ref)
    except ServiceError as e:
        raise http_error(e) from e
    out = UploadOut(
        job_id=job.id,
        session_token=job.session_token,
        workflow_run_ref=job.workflow_run_ref,
        expires_at=job.expires_at,
    )
    enqueue_processing(db, job.id, job.workflow_run_ref)
    return out
