"""
Celery task: run the portrait pipeline for one job.

Walks validating -> generating, generates every variant descriptor once (with
retry and the generation circuit breaker) and reports each outcome through the
worker callbacks, then asks for completion. Variants that already have a Result
(re-run after retry) are skipped.
"""
import logging

from sqlalchemy.orm import Session

from babypeek.core.celery_app import PROCESS_JOB_TASK, celery_app
from babypeek.core.config import settings
from babypeek.db.session import SessionLocal
from babypeek.pipeline import DEFAULT_FAILURE_MESSAGE, CallbackOutcome, JobStage, JobStatus, WorkerCallbacks
from babypeek.pipeline.engine import descriptor_for_index
from babypeek.services.circuit_breaker import GENERATION_BREAKER, get_circuit_breaker
from babypeek.services.generation import (
    GenerationError,
    VariantGenerator,
    VariantRequest,
    create_generator_from_settings,
    generate_with_retry,
)
from babypeek.services.jobs.service import JobService
from babypeek.services.results.service import ResultService

logger = logging.getLogger(__name__)


def _stopped(outcome: CallbackOutcome) -> bool:
    """
    The run must stop: stale run, vanished job or a terminal job.
    A redelivered task sees its early stages as duplicates and carries on.
    """
    if outcome.error in ("stale_run", "job_not_found"):
        return True
    snapshot = outcome.snapshot
    return snapshot is None or snapshot.status in (JobStatus.FAILED.value, JobStatus.COMPLETED.value)


def _result(outcome: CallbackOutcome) -> dict:
    snapshot = outcome.snapshot
    return {
        "ok": snapshot is not None and snapshot.status == JobStatus.COMPLETED.value,
        "status": snapshot.status if snapshot else None,
        "results": snapshot.result_count if snapshot else 0,
        "error": outcome.error,
    }


def run_pipeline(
    db: Session,
    job_id: str,
    generator: VariantGenerator,
    workflow_run_ref: str | None = None,
    breaker=None,
) -> dict:
    job = JobService(db).get(job_id)
    if not job:
        logger.error("process_job_not_found", extra={"job_id": job_id})
        return {"ok": False, "error": "job_not_found"}

    run_ref = workflow_run_ref or job.workflow_run_ref
    callbacks = WorkerCallbacks(db, run_ref)

    outcome = callbacks.on_stage_reached(job_id, JobStage.VALIDATING)
    if _stopped(outcome):
        return _result(outcome)
    if not job.source_image_ref:
        return _result(callbacks.on_failure(job_id, "Upload is missing. Please try again."))

    outcome = callbacks.on_stage_reached(job_id, JobStage.GENERATING)
    if _stopped(outcome):
        return _result(outcome)

    done = {r.variant_index for r in ResultService(db).list_for_job(job_id)}
    done |= {int(f["variant_index"]) for f in (outcome.snapshot.failed_variants or [])}
    for index in range(job.variant_count):
        if index in done:
            continue
        descriptor = descriptor_for_index(index)
        request = VariantRequest(
            job_id=job_id,
            variant_index=index,
            variant_descriptor=descriptor,
            source_image_ref=job.source_image_ref,
        )
        try:
            variant = generate_with_retry(generator, request, settings, breaker=breaker)
        except GenerationError as e:
            failure_type = e.detail.get("failure_type", "generation_failed")
            outcome = callbacks.on_variant_failed(job_id, index, f"{failure_type}: {e}")
        else:
            outcome = callbacks.on_variant_complete(
                job_id,
                index,
                variant.result_ref,
                preview_ref=variant.preview_ref,
                timing_ms=variant.generation_time_ms,
                variant_descriptor=descriptor,
                file_size_bytes=variant.file_size_bytes,
            )
        if _stopped(outcome):
            return _result(outcome)

    return _result(callbacks.on_stage_reached(job_id, JobStage.COMPLETE))


@celery_app.task(
    bind=True,
    name=PROCESS_JOB_TASK,
    time_limit=1800,
    soft_time_limit=1780,
)
def process_job(self, job_id: str, workflow_run_ref: str | None = None) -> dict:
    """Generate all portrait variants for a job."""
    db: Session = SessionLocal()
    generator = create_generator_from_settings(settings)
    try:
        return run_pipeline(
            db,
            job_id,
            generator,
            workflow_run_ref=workflow_run_ref,
            breaker=get_circuit_breaker(GENERATION_BREAKER),
        )
    except Exception:
        logger.exception("process_job_failed", extra={"job_id": job_id})
        db.rollback()
        try:
            WorkerCallbacks(db, workflow_run_ref).on_failure(job_id, DEFAULT_FAILURE_MESSAGE)
        except Exception:
            logger.exception("process_job_mark_failed_error", extra={"job_id": job_id})
        return {"ok": False, "error": "internal_error"}
    finally:
        generator.close()
        db.close()
