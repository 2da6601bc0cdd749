"""
Purchase lifecycle: pending -> completed | failed, completed -> refunded.
Webhook confirmations are at-least-once, so every transition is idempotent.
Unlock state is never cached: access_for_job re-reads purchases on every call.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babypeek.models.job import Job
from babypeek.models.purchase import Purchase
from babypeek.models.result import Result
from babypeek.paywall import (
    AccessContext,
    AccessDecision,
    PurchaseFacts,
    record_revoke,
    record_unlock,
    resolve_access,
)
from babypeek.pipeline.stages import JobStatus
from babypeek.services.errors import Conflict, NotFound, ValidationFailed
from babypeek.utils.metrics import purchases_total

logger = logging.getLogger(__name__)

TIERS = ("single", "all")


class PurchaseService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_pending(
        self,
        job: Job,
        tier: str = "single",
        variant_index: int | None = None,
        amount: int = 0,
        currency: str = "usd",
        provider_session_id: str | None = None,
        is_gift: bool = False,
        purchaser_email: str | None = None,
        gift_recipient_email: str | None = None,
    ) -> Purchase:
        """
        Idempotent: the same provider_session_id, or an open pending purchase for
        the same job/tier/variant, returns the existing row.
        """
        if tier not in TIERS:
            raise ValidationFailed(f"unknown tier: {tier}")
        if job.status != JobStatus.COMPLETED.value:
            raise Conflict("Portraits can be purchased once processing has completed.")
        if tier == "single" and variant_index is not None:
            exists = (
                self.db.query(Result.id)
                .filter(Result.job_id == job.id, Result.variant_index == variant_index)
                .first()
            )
            if not exists:
                raise ValidationFailed(f"variant {variant_index} does not exist")

        if provider_session_id:
            existing = self.get_by_provider_session(provider_session_id)
            if existing:
                return existing

        open_purchase = (
            self.db.query(Purchase)
            .filter(
                Purchase.job_id == job.id,
                Purchase.tier == tier,
                Purchase.variant_index.is_(None) if variant_index is None else Purchase.variant_index == variant_index,
                Purchase.is_gift == is_gift,
                Purchase.status == "pending",
            )
            .first()
        )
        if open_purchase:
            return open_purchase

        purchase = Purchase(
            job_id=job.id,
            provider_session_id=provider_session_id,
            tier=tier,
            variant_index=variant_index if tier == "single" else None,
            amount=amount,
            currency=currency,
            status="pending",
            is_gift=is_gift,
            purchaser_email=purchaser_email if is_gift else job.email,
            gift_recipient_email=gift_recipient_email or (job.email if is_gift else None),
        )
        try:
            self.db.add(purchase)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning("purchase_duplicate", extra={"job_id": job.id})
            existing = self.get_by_provider_session(provider_session_id) if provider_session_id else None
            if existing is None:
                raise
            return existing
        self.db.refresh(purchase)
        purchases_total.labels(tier=tier, status="pending").inc()
        logger.info(
            "purchase_created",
            extra={"job_id": job.id, "purchase_id": purchase.id, "tier": tier, "is_gift": is_gift},
        )
        return purchase

    # ------------------------------------------------------------------
    # Webhook transitions
    # ------------------------------------------------------------------

    def mark_completed(
        self,
        purchase_id: str | None = None,
        provider_session_id: str | None = None,
        provider_payment_ref: str | None = None,
    ) -> Purchase:
        purchase = self._lock(purchase_id, provider_session_id)
        if purchase.status == "completed":
            self.db.rollback()
            logger.info("purchase_already_completed", extra={"purchase_id": purchase.id})
            return purchase
        if purchase.status == "refunded":
            # late completion after a refund must not re-grant access
            self.db.rollback()
            logger.warning("purchase_complete_after_refund", extra={"purchase_id": purchase.id})
            return purchase

        purchase.status = "completed"
        purchase.completed_at = datetime.now(timezone.utc)
        if provider_payment_ref:
            purchase.provider_payment_ref = provider_payment_ref
        self.db.add(purchase)
        self.db.commit()
        self.db.refresh(purchase)
        purchases_total.labels(tier=purchase.tier, status="completed").inc()
        record_unlock(
            purchase.job_id,
            purchase.id,
            purchase.tier,
            variant_index=purchase.variant_index,
            is_gift=purchase.is_gift,
            amount=purchase.amount,
            currency=purchase.currency,
        )
        return purchase

    def mark_refunded(
        self,
        purchase_id: str | None = None,
        provider_session_id: str | None = None,
    ) -> Purchase:
        """Revokes retroactively: resolve_access ignores refunded purchases."""
        purchase = self._lock(purchase_id, provider_session_id)
        if purchase.status == "refunded":
            self.db.rollback()
            return purchase

        purchase.status = "refunded"
        purchase.refunded_at = datetime.now(timezone.utc)
        self.db.add(purchase)
        self.db.commit()
        self.db.refresh(purchase)
        purchases_total.labels(tier=purchase.tier, status="refunded").inc()
        record_revoke(purchase.job_id, purchase.id, purchase.tier)
        return purchase

    def mark_failed(
        self,
        purchase_id: str | None = None,
        provider_session_id: str | None = None,
        reason: str | None = None,
    ) -> Purchase:
        """Only a pending purchase can fail; anything else is left as is."""
        purchase = self._lock(purchase_id, provider_session_id)
        if purchase.status != "pending":
            self.db.rollback()
            return purchase

        purchase.status = "failed"
        self.db.add(purchase)
        self.db.commit()
        self.db.refresh(purchase)
        purchases_total.labels(tier=purchase.tier, status="failed").inc()
        logger.warning(
            "purchase_failed",
            extra={"purchase_id": purchase.id, "job_id": purchase.job_id, "reason": reason},
        )
        return purchase

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def list_for_job(self, job_id: str) -> list[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.job_id == job_id)
            .order_by(Purchase.created_at.asc())
            .all()
        )

    def access_context(
        self,
        job: Job,
        results: list[Result] | None = None,
        viewer_is_owner: bool = True,
    ) -> AccessContext:
        """AccessContext from fresh rows; nothing is cached between calls."""
        if results is None:
            results = (
                self.db.query(Result)
                .filter(Result.job_id == job.id)
                .order_by(Result.variant_index.asc())
                .all()
            )
        primary_index = next(
            (r.variant_index for r in results if r.id == job.primary_result_id),
            None,
        )
        return AccessContext(
            job_id=job.id,
            viewer_is_owner=viewer_is_owner,
            variant_indexes=tuple(r.variant_index for r in results),
            primary_variant_index=primary_index,
            purchases=tuple(
                PurchaseFacts(
                    purchase_id=p.id,
                    status=p.status,
                    tier=p.tier,
                    variant_index=p.variant_index,
                    is_gift=p.is_gift,
                )
                for p in self.list_for_job(job.id)
            ),
        )

    def access_for_job(
        self,
        job: Job,
        results: list[Result] | None = None,
        viewer_is_owner: bool = True,
    ) -> AccessDecision:
        return resolve_access(self.access_context(job, results, viewer_is_owner))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, purchase_id: str) -> Purchase | None:
        return self.db.query(Purchase).filter(Purchase.id == purchase_id).one_or_none()

    def get_by_provider_session(self, provider_session_id: str) -> Purchase | None:
        return (
            self.db.query(Purchase)
            .filter(Purchase.provider_session_id == provider_session_id)
            .one_or_none()
        )

    def _lock(self, purchase_id: str | None, provider_session_id: str | None) -> Purchase:
        query = self.db.query(Purchase)
        if purchase_id:
            query = query.filter(Purchase.id == purchase_id)
        elif provider_session_id:
            query = query.filter(Purchase.provider_session_id == provider_session_id)
        else:
            raise ValidationFailed("purchase_id or provider_session_id is required")
        purchase = query.with_for_update().one_or_none()
        if purchase is None:
            raise NotFound("Purchase not found.")
        return purchase
