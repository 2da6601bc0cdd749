from datetime import datetime

from pydantic import BaseModel


class ResultOut(BaseModel):
    result_id: str
    variant_index: int
    variant_descriptor: str
    is_primary: bool
    unlocked: bool
    preview_url: str | None = None
    result_url: str | None = None  # only for unlocked variants
    created_at: datetime | None = None


class ResultsOut(BaseModel):
    job_id: str
    tier: str
    show_preview: bool
    results: list[ResultOut]


class ShareOut(BaseModel):
    """Public share page: the watermarked preview only, no PII."""

    share_id: str
    job_id: str
    preview_url: str


class DownloadOut(BaseModel):
    download_url: str
    link_expires_at: datetime
    window_expires_at: datetime
    suggested_filename: str
    variant_index: int
    download_count: int
    is_redownload: bool


class DownloadStatusOut(BaseModel):
    can_download: bool
    is_expired: bool
    expires_at: datetime | None = None
    days_remaining: int | None = None
    error: str | None = None
