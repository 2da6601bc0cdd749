"""
Purchase model: payment outcome for unlocking portraits of a job.
provider_session_id is unique and correlates webhook confirmations.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from babypeek.db.base import Base


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    # Detached (None) when the job is deleted; the row stays anonymized for accounting
    job_id = Column(String, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True, index=True)
    provider_session_id = Column(String, unique=True, nullable=True)
    provider_payment_ref = Column(String, nullable=True)
    tier = Column(String, nullable=False, default="single")       # single / all
    variant_index = Column(Integer, nullable=True)                # single tier: None = primary result
    amount = Column(Integer, nullable=False, default=0)           # cents
    currency = Column(String, nullable=False, default="usd")
    status = Column(String, nullable=False, default="pending")    # pending / completed / failed / refunded
    is_gift = Column(Boolean, nullable=False, default=False)
    purchaser_email = Column(String, nullable=True)
    gift_recipient_email = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
