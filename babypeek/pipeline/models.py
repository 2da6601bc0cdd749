"""
DTO stage engine: JobSnapshot (state read under lock), VariantPayload (worker input),
CallbackOutcome (what a worker callback reports back).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class JobSnapshot(BaseModel):
    """Point-in-time view of a job. Two snapshots compare equal iff nothing changed."""

    job_id: str
    status: str
    stage: str | None = None
    progress: int = 0
    workflow_run_ref: str | None = None
    primary_result_id: str | None = None
    primary_result_ref: str | None = None
    preview_ref: str | None = None
    source_image_ref: str | None = None
    result_count: int = 0
    variant_count: int = 0
    failed_variants: list[dict[str, Any]] = Field(default_factory=list)
    error_message: str | None = None
    updated_at: datetime | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_job(cls, job: Any, result_count: int) -> "JobSnapshot":
        return cls(
            job_id=job.id,
            status=job.status,
            stage=job.stage,
            progress=job.progress or 0,
            workflow_run_ref=job.workflow_run_ref,
            primary_result_id=job.primary_result_id,
            primary_result_ref=job.primary_result_ref,
            preview_ref=job.preview_ref,
            source_image_ref=job.source_image_ref,
            result_count=result_count,
            variant_count=job.variant_count,
            failed_variants=list(job.failed_variants or []),
            error_message=job.error_message,
            updated_at=job.updated_at,
        )

    @property
    def terminated_variants(self) -> int:
        return self.result_count + len(self.failed_variants)


class VariantPayload(BaseModel):
    """One generated variant reported by the worker."""

    variant_index: int = Field(..., ge=0)
    result_ref: str
    preview_ref: str | None = None
    variant_descriptor: str | None = None  # None -> taken from settings by index
    generation_time_ms: int | None = None
    file_size_bytes: int | None = None

    model_config = {"frozen": True}


class CallbackOutcome(BaseModel):
    """
    Result of a worker callback. Never raised: errors land in `error`.
    duplicate=True means the callback was already applied (at-least-once delivery).
    """

    snapshot: JobSnapshot | None = None
    applied: bool = False
    duplicate: bool = False
    error: str | None = None

    model_config = {"frozen": True}
