from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class UploadIn(BaseModel):
    email: str
    source_image_ref: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = (v or "").strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("invalid email")
        return v


class UploadOut(BaseModel):
    job_id: str
    session_token: str
    workflow_run_ref: str
    expires_at: datetime


class StatusOut(BaseModel):
    status: str
    stage: str | None
    progress: int
    result_id: str | None = None
    result_url: str | None = None  # full resolution, only when unlocked
    preview_url: str | None = None
    original_url: str | None = None
    prompt_version: str | None = None
    error_message: str | None = None
    updated_at: datetime | None = None


class RetryOut(BaseModel):
    job_id: str
    status: str
    workflow_run_ref: str


class DeleteDataOut(BaseModel):
    success: bool
    message: str
    objects_deleted: int
