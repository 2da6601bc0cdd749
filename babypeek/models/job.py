from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from babypeek.db.base import Base, JSONType

DEFAULT_RETENTION_DAYS = 30


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Job(Base):
    """One uploaded ultrasound image and its portrait processing run."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))

    # Identification without accounts: email + bearer session token
    email = Column(String, nullable=False)
    session_token = Column(String, unique=True, nullable=False, index=True)

    # Opaque storage references, never raw bytes
    source_image_ref = Column(String, nullable=False)
    primary_result_ref = Column(String, nullable=True)
    preview_ref = Column(String, nullable=True)
    primary_result_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending")
    stage = Column(String, nullable=True)  # null until validating starts
    progress = Column(Integer, nullable=False, default=0)
    workflow_run_ref = Column(String, nullable=True, index=True)
    variant_count = Column(Integer, nullable=False, default=4)
    failed_variants = Column(JSONType, nullable=False, default=list)  # [{"variant_index", "reason"}]
    stage_history = Column(JSONType, nullable=False, default=list)  # stages applied for workflow_run_ref
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
    expires_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: _now() + timedelta(days=DEFAULT_RETENTION_DAYS),
        index=True,
    )
