from pydantic import BaseModel, Field


class StageReachedIn(BaseModel):
    stage: str
    workflow_run_ref: str | None = None
    progress_hint: int | None = Field(None, ge=0, le=100)


class VariantCompleteIn(BaseModel):
    variant_index: int = Field(..., ge=0)
    result_ref: str = Field(..., min_length=1)
    preview_ref: str | None = None
    timing_ms: int | None = Field(None, ge=0)
    variant_descriptor: str | None = None
    file_size_bytes: int | None = Field(None, ge=0)
    workflow_run_ref: str | None = None


class VariantFailedIn(BaseModel):
    variant_index: int = Field(..., ge=0)
    reason: str = "generation_failed"
    workflow_run_ref: str | None = None


class FailureIn(BaseModel):
    reason: str = Field(..., min_length=1)
    workflow_run_ref: str | None = None


class CallbackOut(BaseModel):
    applied: bool
    duplicate: bool
    error: str | None = None
    status: str | None = None
    stage: str | None = None
    progress: int | None = None
