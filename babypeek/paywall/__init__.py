"""
Централизованный paywall (внутренняя библиотека).
Decision (resolve_access) отделено от I/O; контракт через AccessContext.
"""
from babypeek.paywall.access import granting_purchase_ids, resolve_access
from babypeek.paywall.audit import record_revoke, record_unlock
from babypeek.paywall.models import (
    AccessContext,
    AccessDecision,
    PurchaseFacts,
)

__all__ = [
    "AccessContext",
    "AccessDecision",
    "PurchaseFacts",
    "granting_purchase_ids",
    "resolve_access",
    "record_unlock",
    "record_revoke",
]
