from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, storage_dep
from babypeek.core.config import settings
from babypeek.db.session import get_db
from babypeek.schemas.results import DownloadOut, DownloadStatusOut
from babypeek.services.downloads.service import DownloadService
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import JobService
from babypeek.storage import Storage

router = APIRouter(prefix="/api", tags=["downloads"])


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.headers.get("x-real-ip") or (request.client.host if request.client else None)


@router.get("/download/{job_id}", response_model=DownloadOut)
def download(
    job_id: str,
    request: Request,
    variant_index: int | None = Query(default=None),
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
) -> DownloadOut:
    """HD download link for an unlocked variant (primary by default)."""
    try:
        job = JobService(db).get_for_session(job_id, x_session_token)
        grant = DownloadService(db).grant(job, variant_index, client_ip(request))
    except ServiceError as e:
        raise http_error(e) from e

    now = datetime.now(timezone.utc)
    return DownloadOut(
        download_url=storage.sign(grant.result.result_ref),
        link_expires_at=now + timedelta(seconds=settings.signed_url_ttl_seconds),
        window_expires_at=grant.window_expires_at,
        suggested_filename=f"babypeek-{now.date().isoformat()}.jpg",
        variant_index=grant.result.variant_index,
        download_count=grant.download_count,
        is_redownload=grant.is_redownload,
    )


@router.get("/download/{job_id}/status", response_model=DownloadStatusOut)
def download_status(
    job_id: str,
    variant_index: int | None = Query(default=None),
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> DownloadStatusOut:
    """Re-download page: is the window still open, and for how long."""
    try:
        job = JobService(db).get_for_session(job_id, x_session_token)
    except ServiceError as e:
        raise http_error(e) from e
    status = DownloadService(db).status(job, variant_index)
    return DownloadStatusOut(
        can_download=status.can_download,
        is_expired=status.is_expired,
        expires_at=status.expires_at,
        days_remaining=status.days_remaining,
        error=status.error,
    )
