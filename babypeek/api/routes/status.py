from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, storage_dep
from babypeek.db.session import get_db
from babypeek.schemas.jobs import StatusOut
from babypeek.services.errors import ServiceError
from babypeek.services.status.service import StatusService
from babypeek.storage import Storage

router = APIRouter(prefix="/api", tags=["jobs"])


@router.get("/status/{job_id}", response_model=StatusOut)
def get_status(
    job_id: str,
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
) -> StatusOut:
    """Authoritative job state. Wrong token and unknown job both answer 401 SESSION_EXPIRED."""
    try:
        return StatusService(db, storage).get_status(job_id, x_session_token)
    except ServiceError as e:
        raise http_error(e) from e
