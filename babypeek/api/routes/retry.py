from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error
from babypeek.api.routes.uploads import enqueue_processing
from babypeek.db.session import get_db
from babypeek.schemas.jobs import RetryOut
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import JobService

router = APIRouter(prefix="/api", tags=["jobs"])


@router.post("/retry/{job_id}", response_model=RetryOut)
def retry_job(
    job_id: str,
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> RetryOut:
    """Failed job only: new workflow run, same job id and session token."""
    service = JobService(db)
    try:
        job = service.get_for_session(job_id, x_session_token)
        job = service.reset_for_retry(job)
    except ServiceError as e:
        raise http_error(e) from e
    out = RetryOut(job_id=job.id, status=job.status, workflow_run_ref=job.workflow_run_ref)
    enqueue_processing(db, job.id, job.workflow_run_ref)
    return out
