"""
Аудит разблокировок: record_unlock вызывается по факту подтверждённой оплаты (webhook).
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def record_unlock(
    job_id: str,
    purchase_id: str,
    tier: str,
    *,
    variant_index: int | None = None,
    is_gift: bool = False,
    amount: int = 0,
    currency: str = "usd",
) -> None:
    """
    Записать событие успешной разблокировки для аналитики.
    Вызывать только после того как платёж подтверждён.
    """
    logger.info(
        "paywall_unlock",
        extra={
            "job_id": job_id,
            "purchase_id": purchase_id,
            "tier": tier,
            "variant_index": variant_index,
            "is_gift": is_gift,
            "amount": amount,
            "currency": currency,
        },
    )


def record_revoke(job_id: str, purchase_id: str, tier: str) -> None:
    """Refund: доступ отзывается на следующем resolve_access."""
    logger.warning(
        "paywall_revoke",
        extra={"job_id": job_id, "purchase_id": purchase_id, "tier": tier},
    )
