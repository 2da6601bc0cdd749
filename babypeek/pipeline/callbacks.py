"""
Worker callback adapters over StageEngine.

Delivery from the generation worker is at-least-once and unordered across
variants. Adapters never raise a stage error to the caller: the error is logged
by the engine and returned in CallbackOutcome, the job stays queryable in its
last valid state.
"""
import logging

from sqlalchemy.orm import Session

from babypeek.pipeline.engine import StageEngine
from babypeek.pipeline.errors import JobNotFound, StageError
from babypeek.pipeline.models import CallbackOutcome, JobSnapshot, VariantPayload
from babypeek.pipeline.stages import JobStage

logger = logging.getLogger(__name__)


class WorkerCallbacks:
    def __init__(self, db: Session, workflow_run_ref: str | None = None) -> None:
        self.db = db
        self.engine = StageEngine(db)
        self.workflow_run_ref = workflow_run_ref

    def on_stage_reached(
        self,
        job_id: str,
        stage: JobStage | str,
        progress_hint: int | None = None,
    ) -> CallbackOutcome:
        """complete drains first_ready -> storing -> watermarking -> complete."""
        return self._call(
            job_id,
            lambda: self.engine.apply(
                job_id,
                stage,
                progress_hint=progress_hint,
                workflow_run_ref=self.workflow_run_ref,
            ),
        )

    def on_variant_complete(
        self,
        job_id: str,
        variant_index: int,
        result_ref: str,
        preview_ref: str | None = None,
        timing_ms: int | None = None,
        variant_descriptor: str | None = None,
        file_size_bytes: int | None = None,
    ) -> CallbackOutcome:
        payload = VariantPayload(
            variant_index=variant_index,
            result_ref=result_ref,
            preview_ref=preview_ref,
            variant_descriptor=variant_descriptor,
            generation_time_ms=timing_ms,
            file_size_bytes=file_size_bytes,
        )
        return self._call(
            job_id,
            lambda: self.engine.record_variant(job_id, payload, self.workflow_run_ref),
        )

    def on_variant_failed(self, job_id: str, variant_index: int, reason: str) -> CallbackOutcome:
        return self._call(
            job_id,
            lambda: self.engine.record_variant_failure(
                job_id, variant_index, reason, self.workflow_run_ref
            ),
        )

    def on_failure(self, job_id: str, reason: str) -> CallbackOutcome:
        return self._call(
            job_id,
            lambda: self.engine.fail(job_id, reason, self.workflow_run_ref),
        )

    def _call(self, job_id: str, fn) -> CallbackOutcome:
        try:
            snapshot, applied = fn()
        except StageError as exc:
            return CallbackOutcome(
                snapshot=self._current(job_id, exc),
                applied=False,
                duplicate=False,
                error=exc.code,
            )
        return CallbackOutcome(snapshot=snapshot, applied=applied, duplicate=not applied)

    def _current(self, job_id: str, exc: StageError) -> JobSnapshot | None:
        if isinstance(exc, JobNotFound):
            return None
        try:
            return self.engine.snapshot(job_id)
        except JobNotFound:
            logger.warning("callback_job_vanished", extra={"job_id": job_id})
            return None
