from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error
from babypeek.db.session import get_db
from babypeek.schemas.preferences import PreferenceIn, PreferenceOut
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import JobService
from babypeek.services.preferences.service import PreferenceService

router = APIRouter(prefix="/api", tags=["preferences"])


@router.post("/preferences", response_model=PreferenceOut, status_code=201)
def record_preference(
    body: PreferenceIn,
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> PreferenceOut:
    try:
        job = JobService(db).get_for_session(body.job_id, x_session_token)
        pref = PreferenceService(db).record(
            job,
            selected_result_id=body.selected_result_id,
            reason=body.reason,
            shown_variants=body.shown_variants,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return PreferenceOut(
        preference_id=pref.id,
        job_id=pref.job_id,
        selected_result_id=pref.selected_result_id,
        selected_variant_descriptor=pref.selected_variant_descriptor,
        reason=pref.reason,
        created_at=pref.created_at,
    )
