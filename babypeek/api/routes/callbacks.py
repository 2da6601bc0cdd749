"""
Worker callback HTTP surface for external generation workers.
Always 200 with the outcome: stage errors are reported, never raised, so an
at-least-once worker does not retry a rejected callback forever.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babypeek.api.deps import require_worker_secret
from babypeek.db.session import get_db
from babypeek.pipeline import CallbackOutcome, WorkerCallbacks
from babypeek.schemas.callbacks import (
    CallbackOut,
    FailureIn,
    StageReachedIn,
    VariantCompleteIn,
    VariantFailedIn,
)

router = APIRouter(
    prefix="/internal/jobs",
    tags=["internal"],
    dependencies=[Depends(require_worker_secret)],
)


def _out(outcome: CallbackOutcome) -> CallbackOut:
    snapshot = outcome.snapshot
    return CallbackOut(
        applied=outcome.applied,
        duplicate=outcome.duplicate,
        error=outcome.error,
        status=snapshot.status if snapshot else None,
        stage=snapshot.stage if snapshot else None,
        progress=snapshot.progress if snapshot else None,
    )


@router.post("/{job_id}/stage", response_model=CallbackOut)
def stage_reached(job_id: str, body: StageReachedIn, db: Session = Depends(get_db)) -> CallbackOut:
    callbacks = WorkerCallbacks(db, body.workflow_run_ref)
    return _out(callbacks.on_stage_reached(job_id, body.stage, progress_hint=body.progress_hint))


@router.post("/{job_id}/variants", response_model=CallbackOut)
def variant_complete(job_id: str, body: VariantCompleteIn, db: Session = Depends(get_db)) -> CallbackOut:
    callbacks = WorkerCallbacks(db, body.workflow_run_ref)
    return _out(
        callbacks.on_variant_complete(
            job_id,
            body.variant_index,
            body.result_ref,
            preview_ref=body.preview_ref,
            timing_ms=body.timing_ms,
            variant_descriptor=body.variant_descriptor,
            file_size_bytes=body.file_size_bytes,
        )
    )


@router.post("/{job_id}/variant-failures", response_model=CallbackOut)
def variant_failed(job_id: str, body: VariantFailedIn, db: Session = Depends(get_db)) -> CallbackOut:
    callbacks = WorkerCallbacks(db, body.workflow_run_ref)
    return _out(callbacks.on_variant_failed(job_id, body.variant_index, body.reason))


@router.post("/{job_id}/failure", response_model=CallbackOut)
def failure(job_id: str, body: FailureIn, db: Session = Depends(get_db)) -> CallbackOut:
    callbacks = WorkerCallbacks(db, body.workflow_run_ref)
    return _out(callbacks.on_failure(job_id, body.reason))
