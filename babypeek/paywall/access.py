"""
Decision только: resolve_access(ctx) -> AccessDecision.
Чистая функция, без I/O. Only completed purchases count: refunded, pending and
failed ones are ignored, so a refund revokes access on the next call.
"""
from __future__ import annotations

from babypeek.paywall.models import AccessContext, AccessDecision, PurchaseFacts

GRANTING_STATUS = "completed"


def _covered(ctx: AccessContext, purchase: PurchaseFacts) -> frozenset[int]:
    """Variant indexes one completed purchase unlocks."""
    if purchase.status != GRANTING_STATUS:
        return frozenset()
    existing = frozenset(ctx.variant_indexes)
    if purchase.tier == "all":
        return existing
    index = purchase.variant_index
    if index is None:
        index = ctx.primary_variant_index
    if index is not None and index in existing:
        return frozenset({index})
    return frozenset()


def resolve_access(ctx: AccessContext) -> AccessDecision:
    """
    Разрешает, какие варианты job разблокированы.

    - нет completed покупок -> только превью
    - completed single -> ровно один вариант (variant_index=None -> primary)
    - completed all -> все Result
    - gift -> только для владельца job
    """
    if not ctx.viewer_is_owner:
        return AccessDecision(show_preview=True)

    unlocked: set[int] = set()
    tier = "none"

    for purchase in ctx.purchases:
        covered = _covered(ctx, purchase)
        if not covered:
            continue
        unlocked |= covered
        if purchase.tier == "all":
            tier = "all"
        elif tier == "none":
            tier = "single"

    primary_unlocked = (
        ctx.primary_variant_index is not None and ctx.primary_variant_index in unlocked
    )
    return AccessDecision(
        unlocked_variant_indexes=frozenset(unlocked),
        tier=tier,
        show_preview=not primary_unlocked,
    )


def granting_purchase_ids(ctx: AccessContext, variant_index: int | None) -> tuple[str, ...]:
    """Completed purchases that unlock variant_index for the viewer (download window source)."""
    if not ctx.viewer_is_owner or variant_index is None:
        return ()
    return tuple(
        p.purchase_id for p in ctx.purchases if variant_index in _covered(ctx, p)
    )
