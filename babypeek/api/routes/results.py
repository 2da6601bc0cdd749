from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, storage_dep
from babypeek.db.session import get_db
from babypeek.schemas.results import ResultOut, ResultsOut
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import JobService
from babypeek.services.purchases.service import PurchaseService
from babypeek.services.results.service import ResultService
from babypeek.storage import Storage

router = APIRouter(prefix="/api", tags=["results"])


@router.get("/results/{job_id}", response_model=ResultsOut)
def list_results(
    job_id: str,
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
) -> ResultsOut:
    try:
        job = JobService(db).get_for_session(job_id, x_session_token)
    except ServiceError as e:
        raise http_error(e) from e

    results = ResultService(db).list_for_job(job.id)
    decision = PurchaseService(db).access_for_job(job, results)
    return ResultsOut(
        job_id=job.id,
        tier=decision.tier,
        show_preview=decision.show_preview,
        results=[
            ResultOut(
                result_id=r.id,
                variant_index=r.variant_index,
                variant_descriptor=r.variant_descriptor,
                is_primary=r.id == job.primary_result_id,
                unlocked=decision.is_unlocked(r.variant_index),
                preview_url=storage.sign(r.preview_ref) if r.preview_ref else None,
                result_url=storage.sign(r.result_ref) if decision.is_unlocked(r.variant_index) else None,
                created_at=r.created_at,
            )
            for r in results
        ],
    )
