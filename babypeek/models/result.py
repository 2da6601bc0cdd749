from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from babypeek.db.base import Base


class Result(Base):
    """One generated portrait variant. Append-only; removed only with its job."""

    __tablename__ = "results"
    __table_args__ = (
        UniqueConstraint("job_id", "variant_index", name="uq_results_job_variant"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    job_id = Column(String, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    result_ref = Column(String, nullable=False)    # full resolution object
    preview_ref = Column(String, nullable=True)    # watermarked / low-res object
    variant_descriptor = Column(String, nullable=False)  # prompt version that produced it
    variant_index = Column(Integer, nullable=False)      # 0-based, stable ordering
    file_size_bytes = Column(Integer, nullable=True)
    generation_time_ms = Column(Integer, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
