"""
DTO paywall: PurchaseFacts, AccessContext (вход resolve_access), AccessDecision.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

PurchaseTier = Literal["single", "all"]
AccessTier = Literal["none", "single", "all"]


class PurchaseFacts(BaseModel):
    """Snapshot of one Purchase row; re-read from the DB for every decision."""

    purchase_id: str
    status: str  # pending / completed / failed / refunded
    tier: PurchaseTier = "single"
    variant_index: int | None = None  # single tier: None = primary result
    is_gift: bool = False

    model_config = {"frozen": True}


# ----- Вход для resolve_access (единый контракт, чтобы не расползаться по сигнатурам) -----


class AccessContext(BaseModel):
    """
    Единый контракт входа для resolve_access.
    Keyed purely on job_id: the owner's session validity is not part of the decision.
    """

    job_id: str
    variant_indexes: tuple[int, ...] = ()  # indexes of persisted Results
    primary_variant_index: int | None = None
    purchases: tuple[PurchaseFacts, ...] = ()
    # Gift purchases unlock for the job owner only; the purchaser gets nothing
    viewer_is_owner: bool = True

    model_config = {"frozen": True}


# ----- Решение доступа (чистая логика, без I/O) -----


class AccessDecision(BaseModel):
    """Результат resolve_access: какие варианты отдавать в полном разрешении."""

    unlocked_variant_indexes: frozenset[int] = Field(
        default_factory=frozenset,
        description="Variant indexes whose full-resolution result may be signed",
    )
    tier: AccessTier = Field("none", description="Highest tier among completed purchases")
    show_preview: bool = Field(
        True,
        description="True = primary variant is locked, serve the watermarked preview",
    )

    model_config = {"frozen": True}

    def is_unlocked(self, variant_index: int | None) -> bool:
        return variant_index is not None and variant_index in self.unlocked_variant_indexes
