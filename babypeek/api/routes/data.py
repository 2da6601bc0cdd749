import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, storage_dep
from babypeek.db.session import get_db
from babypeek.schemas.jobs import DeleteDataOut
from babypeek.services.errors import NotFound
from babypeek.services.jobs.service import JobService
from babypeek.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["data"])


@router.delete("/data/{session_token}", response_model=DeleteDataOut)
def delete_data(
    session_token: str,
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
) -> DeleteDataOut:
    """Delete everything stored for the job behind this session token."""
    service = JobService(db)
    job = service.get_by_session_token(session_token)
    if job is None:
        raise http_error(NotFound("Data not found or already deleted."))
    try:
        deleted = service.delete_job_data(job, storage)
    except Exception as e:
        db.rollback()
        logger.exception("delete_data_failed")
        raise HTTPException(
            status_code=500,
            detail={"code": "DELETE_FAILED", "message": "Failed to delete data. Please try again."},
        ) from e
    return DeleteDataOut(success=True, message="Your data has been deleted", objects_deleted=deleted)
