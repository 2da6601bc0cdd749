from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from babypeek.db.base import Base, JSONType

PREFERENCE_REASONS = (
    "more_realistic",
    "better_lighting",
    "cuter_expression",
    "clearer_details",
    "better_colors",
    "more_natural",
    "other",
)


class Preference(Base):
    """Which variant the user favored. Write-once per job, informational only."""

    __tablename__ = "preferences"
    __table_args__ = (
        UniqueConstraint("job_id", name="uq_preferences_job"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    job_id = Column(String, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    selected_result_id = Column(String, ForeignKey("results.id", ondelete="CASCADE"), nullable=False)
    selected_variant_descriptor = Column(String, nullable=False)
    reason = Column(String, nullable=True)
    shown_variants = Column(JSONType, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
