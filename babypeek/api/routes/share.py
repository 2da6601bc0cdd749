from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, storage_dep
from babypeek.core.config import settings
from babypeek.db.session import get_db
from babypeek.pipeline.stages import JobStatus
from babypeek.schemas.results import ShareOut
from babypeek.services.errors import NotFound
from babypeek.services.jobs.service import JobService
from babypeek.services.purchases.service import PurchaseService
from babypeek.storage import Storage

router = APIRouter(prefix="/api", tags=["share"])


@router.get("/share/{share_id}", response_model=ShareOut)
def get_share(
    share_id: str,
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
) -> ShareOut:
    """
    Public page a gift purchaser sees before checkout. share_id is the job id.
    The viewer is never the owner, so only the watermarked preview is served.
    """
    job = JobService(db).get(share_id)
    if job is None or job.status != JobStatus.COMPLETED.value or not job.preview_ref:
        raise http_error(NotFound("Not available for sharing."))

    decision = PurchaseService(db).access_for_job(job, viewer_is_owner=False)
    if not decision.show_preview:
        raise http_error(NotFound("Not available for sharing."))
    return ShareOut(
        share_id=share_id,
        job_id=job.id,
        preview_url=storage.sign(job.preview_ref, ttl_seconds=settings.share_preview_ttl_seconds),
    )
