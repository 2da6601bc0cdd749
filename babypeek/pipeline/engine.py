"""
Stage engine: the only writer of Job.stage / status / progress.

Every mutation loads the job row with SELECT ... FOR UPDATE, applies one callback
and commits, so stage and progress updates are serialized per job. Results are
appended under the (job_id, variant_index) unique constraint; an IntegrityError
there means another delivery of the same variant won the race.
"""
import logging
from typing import Callable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babypeek.core.config import settings
from babypeek.models.job import Job
from babypeek.models.result import Result
from babypeek.pipeline.errors import (
    InvalidTransition,
    JobNotFound,
    StageError,
    StaleRun,
    TotalFailure,
)
from babypeek.pipeline.models import JobSnapshot, VariantPayload
from babypeek.pipeline.stages import (
    FINALIZATION_STAGES,
    VARIANT_STAGES,
    JobStage,
    check_transition,
    compute_progress,
    next_stage,
    parse_stage,
    status_for_stage,
)
from babypeek.utils.metrics import (
    jobs_completed_total,
    jobs_failed_total,
    stage_transitions_rejected_total,
    stage_transitions_total,
    variants_generated_total,
)

logger = logging.getLogger(__name__)

ALL_VARIANTS_FAILED_MESSAGE = "All portrait variants failed to generate"
DEFAULT_FAILURE_MESSAGE = "Processing failed. Please try again."


def descriptor_for_index(variant_index: int) -> str:
    descriptors = settings.variant_descriptors_list
    if variant_index < len(descriptors):
        return descriptors[variant_index]
    return f"variant-{variant_index}"


class StageEngine:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def advance(
        self,
        job_id: str,
        target_stage: JobStage | str,
        progress_hint: int | None = None,
        result_payload: VariantPayload | None = None,
        workflow_run_ref: str | None = None,
        error_message: str | None = None,
    ) -> JobSnapshot:
        """
        Move the job to target_stage (or record a variant when result_payload is set).
        Raises InvalidTransition / JobNotFound; a duplicate is a no-op returning the snapshot.
        """
        snapshot, _ = self.apply(
            job_id,
            target_stage,
            progress_hint=progress_hint,
            result_payload=result_payload,
            workflow_run_ref=workflow_run_ref,
            error_message=error_message,
        )
        return snapshot

    def apply(
        self,
        job_id: str,
        target_stage: JobStage | str,
        progress_hint: int | None = None,
        result_payload: VariantPayload | None = None,
        workflow_run_ref: str | None = None,
        error_message: str | None = None,
    ) -> tuple[JobSnapshot, bool]:
        """Same as advance, also reporting whether anything was applied."""
        target = parse_stage(target_stage)
        if target is None:
            raise InvalidTransition("target stage is required", job_id=job_id)

        if target == JobStage.FAILED:
            return self.fail(job_id, error_message or DEFAULT_FAILURE_MESSAGE, workflow_run_ref)
        if result_payload is not None:
            if target != JobStage.FIRST_READY:
                exc = InvalidTransition(
                    "variant payload is only accepted with first_ready",
                    job_id=job_id,
                    to_stage=target.value,
                )
                self._log_rejected(exc)
                raise exc
            return self.record_variant(job_id, result_payload, workflow_run_ref, progress_hint)
        if target == JobStage.COMPLETE:
            return self.finalize(job_id, workflow_run_ref)
        return self._run(
            job_id,
            workflow_run_ref,
            lambda job: self._transition(job, target, progress_hint),
        )

    def record_variant(
        self,
        job_id: str,
        payload: VariantPayload,
        workflow_run_ref: str | None = None,
        progress_hint: int | None = None,
    ) -> tuple[JobSnapshot, bool]:
        """Persist one variant Result; the first one moves generating -> first_ready."""
        try:
            return self._run(
                job_id,
                workflow_run_ref,
                lambda job: self._record_variant(job, payload, progress_hint),
            )
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "variant_duplicate",
                extra={"job_id": job_id, "variant_index": payload.variant_index},
            )
            return self.snapshot(job_id), False

    def record_variant_failure(
        self,
        job_id: str,
        variant_index: int,
        reason: str,
        workflow_run_ref: str | None = None,
    ) -> tuple[JobSnapshot, bool]:
        """Record an individual variant failure; all variants failed -> job failed."""
        return self._run(
            job_id,
            workflow_run_ref,
            lambda job: self._record_variant_failure(job, variant_index, reason),
        )

    def finalize(self, job_id: str, workflow_run_ref: str | None = None) -> tuple[JobSnapshot, bool]:
        """
        Drain the remaining stages up to complete, one recorded step at a time.
        Needs every variant terminated; zero successes turn into a failed job.
        """
        return self._run(job_id, workflow_run_ref, self._finalize)

    def fail(
        self,
        job_id: str,
        message: str,
        workflow_run_ref: str | None = None,
    ) -> tuple[JobSnapshot, bool]:
        return self._run(
            job_id,
            workflow_run_ref,
            lambda job: self._fail(job, message, reason="upstream"),
        )

    def snapshot(self, job_id: str) -> JobSnapshot:
        """Read-only snapshot, no lock."""
        job = self.db.query(Job).filter(Job.id == job_id).one_or_none()
        if job is None:
            raise JobNotFound(f"job {job_id} not found", job_id=job_id)
        return JobSnapshot.from_job(job, self._result_count(job))

    # ------------------------------------------------------------------
    # Locked mutation
    # ------------------------------------------------------------------

    def _run(
        self,
        job_id: str,
        workflow_run_ref: str | None,
        mutate: Callable[[Job], bool],
    ) -> tuple[JobSnapshot, bool]:
        try:
            job = self._lock(job_id)
            self._check_run(job, workflow_run_ref)
            try:
                applied = mutate(job)
            except TotalFailure:
                applied = self._fail(job, ALL_VARIANTS_FAILED_MESSAGE, reason="total_failure")
            self.db.flush()
            snapshot = JobSnapshot.from_job(job, self._result_count(job))
        except StageError as exc:
            self.db.rollback()
            self._log_rejected(exc)
            raise
        self.db.commit()
        return snapshot, applied

    def _lock(self, job_id: str) -> Job:
        job = (
            self.db.query(Job)
            .filter(Job.id == job_id)
            .with_for_update()
            .one_or_none()
        )
        if job is None:
            raise JobNotFound(f"job {job_id} not found", job_id=job_id)
        return job

    def _check_run(self, job: Job, workflow_run_ref: str | None) -> None:
        if workflow_run_ref and job.workflow_run_ref and workflow_run_ref != job.workflow_run_ref:
            raise StaleRun(
                f"callback for run {workflow_run_ref}, job is bound to {job.workflow_run_ref}",
                job_id=job.id,
                from_stage=job.stage,
            )

    def _transition(self, job: Job, target: JobStage, progress_hint: int | None) -> bool:
        # stage_history is reset per run, so this is the (run, stage) dedup key
        if target.value in (job.stage_history or []):
            return False
        current = parse_stage(job.stage)
        self._check(job, current, target)

        results = self._result_count(job)
        if target == JobStage.FIRST_READY and results == 0:
            raise InvalidTransition(
                "first_ready requires a persisted variant",
                job_id=job.id,
                from_stage=job.stage,
                to_stage=target.value,
            )
        if target in FINALIZATION_STAGES:
            self._ensure_all_terminated(job, results, target)
        self._set_stage(job, target, results, progress_hint)
        return True

    def _finalize(self, job: Job) -> bool:
        current = parse_stage(job.stage)
        if current == JobStage.COMPLETE:
            return False
        if current is None or current == JobStage.VALIDATING:
            raise InvalidTransition(
                "cannot complete before generating",
                job_id=job.id,
                from_stage=job.stage,
                to_stage=JobStage.COMPLETE.value,
            )
        self._check(job, current, next_stage(current) or JobStage.COMPLETE)

        results = self._result_count(job)
        self._ensure_all_terminated(job, results, JobStage.COMPLETE)
        self._ensure_primary(job)
        while current != JobStage.COMPLETE:
            current = next_stage(current)
            self._set_stage(job, current, results, None)
        return True

    def _record_variant(self, job: Job, payload: VariantPayload, progress_hint: int | None) -> bool:
        index = payload.variant_index
        if self._result_for(job.id, index) is not None:
            logger.info("variant_duplicate", extra={"job_id": job.id, "variant_index": index})
            return False

        current = parse_stage(job.stage)
        self._check_variant_accepted(job, current, index)
        if index in self._failed_indexes(job):
            raise InvalidTransition(
                f"variant {index} already reported as failed",
                job_id=job.id,
                from_stage=job.stage,
            )

        result = Result(
            job_id=job.id,
            result_ref=payload.result_ref,
            preview_ref=payload.preview_ref,
            variant_descriptor=payload.variant_descriptor or descriptor_for_index(index),
            variant_index=index,
            file_size_bytes=payload.file_size_bytes,
            generation_time_ms=payload.generation_time_ms,
        )
        self.db.add(result)
        self.db.flush()

        if job.primary_result_id is None:
            job.primary_result_id = result.id
            job.primary_result_ref = result.result_ref
            job.preview_ref = result.preview_ref

        results = self._result_count(job)
        if current == JobStage.GENERATING:
            self._set_stage(job, JobStage.FIRST_READY, results, progress_hint)
        else:
            job.progress = compute_progress(
                job.progress or 0,
                current,
                results + len(job.failed_variants or []),
                job.variant_count,
                progress_hint,
            )
        variants_generated_total.labels(outcome="success").inc()
        logger.info(
            "variant_persisted",
            extra={"job_id": job.id, "result_id": result.id, "variant_index": index},
        )
        return True

    def _record_variant_failure(self, job: Job, variant_index: int, reason: str) -> bool:
        if variant_index in self._failed_indexes(job):
            return False
        if self._result_for(job.id, variant_index) is not None:
            raise InvalidTransition(
                f"variant {variant_index} already persisted",
                job_id=job.id,
                from_stage=job.stage,
            )
        current = parse_stage(job.stage)
        self._check_variant_accepted(job, current, variant_index)

        failed = list(job.failed_variants or [])
        failed.append({"variant_index": variant_index, "reason": reason})
        job.failed_variants = failed
        variants_generated_total.labels(outcome="failed").inc()
        logger.warning(
            "variant_failed",
            extra={"job_id": job.id, "variant_index": variant_index, "reason": reason},
        )

        results = self._result_count(job)
        if results == 0 and len(failed) >= job.variant_count:
            raise TotalFailure(ALL_VARIANTS_FAILED_MESSAGE, job_id=job.id)
        job.progress = compute_progress(
            job.progress or 0, current, results + len(failed), job.variant_count
        )
        return True

    def _fail(self, job: Job, message: str, reason: str) -> bool:
        current = parse_stage(job.stage)
        if current == JobStage.FAILED:
            return False
        self._check(job, current, JobStage.FAILED)

        job.stage = JobStage.FAILED.value
        job.status = status_for_stage(JobStage.FAILED).value
        job.error_message = message
        job.stage_history = [*(job.stage_history or []), JobStage.FAILED.value]
        stage_transitions_total.labels(to_stage=JobStage.FAILED.value).inc()
        jobs_failed_total.labels(reason=reason).inc()
        logger.warning(
            "job_failed",
            extra={
                "job_id": job.id,
                "from_stage": current.value if current else None,
                "reason": message,
            },
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_stage(self, job: Job, stage: JobStage, results: int, progress_hint: int | None) -> None:
        previous = job.stage
        terminated = results + len(job.failed_variants or [])
        job.stage = stage.value
        job.status = status_for_stage(stage).value
        job.progress = compute_progress(
            job.progress or 0, stage, terminated, job.variant_count, progress_hint
        )
        job.stage_history = [*(job.stage_history or []), stage.value]
        stage_transitions_total.labels(to_stage=stage.value).inc()
        if stage == JobStage.COMPLETE:
            partial = "true" if job.failed_variants else "false"
            jobs_completed_total.labels(partial=partial).inc()
        logger.info(
            "stage_transition",
            extra={"job_id": job.id, "from_stage": previous, "to_stage": stage.value},
        )

    def _check(self, job: Job, current: JobStage | None, target: JobStage) -> None:
        try:
            check_transition(current, target)
        except InvalidTransition as exc:
            exc.job_id = job.id
            raise

    def _check_variant_accepted(self, job: Job, current: JobStage | None, index: int) -> None:
        if current not in VARIANT_STAGES:
            raise InvalidTransition(
                f"variant outcome not accepted at stage {job.stage}",
                job_id=job.id,
                from_stage=job.stage,
            )
        if index >= job.variant_count:
            raise InvalidTransition(
                f"variant_index {index} out of range (variant_count={job.variant_count})",
                job_id=job.id,
                from_stage=job.stage,
            )

    def _ensure_all_terminated(self, job: Job, results: int, target: JobStage) -> None:
        outstanding = job.variant_count - results - len(job.failed_variants or [])
        if outstanding > 0:
            raise InvalidTransition(
                f"{outstanding} variants still outstanding",
                job_id=job.id,
                from_stage=job.stage,
                to_stage=target.value,
            )
        if results == 0:
            raise TotalFailure(ALL_VARIANTS_FAILED_MESSAGE, job_id=job.id)

    def _ensure_primary(self, job: Job) -> None:
        """A re-run may finish without new variants; fall back to the lowest index."""
        if job.primary_result_ref:
            return
        first = (
            self.db.query(Result)
            .filter(Result.job_id == job.id)
            .order_by(Result.variant_index.asc())
            .first()
        )
        if first is not None:
            job.primary_result_id = first.id
            job.primary_result_ref = first.result_ref
            job.preview_ref = first.preview_ref

    def _result_count(self, job: Job) -> int:
        return (
            self.db.query(func.count(Result.id))
            .filter(Result.job_id == job.id)
            .scalar()
            or 0
        )

    def _result_for(self, job_id: str, variant_index: int) -> Result | None:
        return (
            self.db.query(Result)
            .filter(Result.job_id == job_id, Result.variant_index == variant_index)
            .one_or_none()
        )

    @staticmethod
    def _failed_indexes(job: Job) -> set[int]:
        return {int(f["variant_index"]) for f in (job.failed_variants or [])}

    @staticmethod
    def _log_rejected(exc: StageError) -> None:
        stage_transitions_rejected_total.labels(reason=exc.code).inc()
        logger.warning(
            "stage_transition_rejected",
            extra={
                "job_id": exc.job_id,
                "from_stage": getattr(exc, "from_stage", None),
                "to_stage": getattr(exc, "to_stage", None),
                "reason": str(exc),
                "error": exc.code,
            },
        )
