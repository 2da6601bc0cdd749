"""
Download model: one row per HD download link issued for a purchase.
The client IP is stored only as a keyed hash.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from babypeek.db.base import Base


class Download(Base):
    __tablename__ = "downloads"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    purchase_id = Column(String, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_index = Column(Integer, nullable=False)
    ip_hash = Column(String, nullable=True, index=True)
    downloaded_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
