from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error
from babypeek.db.session import get_db
from babypeek.models.purchase import Purchase
from babypeek.schemas.purchases import CheckoutIn, PurchaseOut
from babypeek.services.errors import NotFound, ServiceError, ValidationFailed
from babypeek.services.jobs.service import JobService
from babypeek.services.purchases.service import PurchaseService

router = APIRouter(prefix="/api", tags=["purchases"])


def purchase_out(p: Purchase) -> PurchaseOut:
    return PurchaseOut(
        purchase_id=p.id,
        job_id=p.job_id,
        tier=p.tier,
        variant_index=p.variant_index,
        status=p.status,
        is_gift=p.is_gift,
        created_at=p.created_at,
        completed_at=p.completed_at,
        refunded_at=p.refunded_at,
    )


@router.post("/purchases/{job_id}", response_model=PurchaseOut, status_code=201)
def create_purchase(
    job_id: str,
    body: CheckoutIn,
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> PurchaseOut:
    """Owner checkout. Gift checkouts go through /api/purchases/{job_id}/gift."""
    try:
        job = JobService(db).get_for_session(job_id, x_session_token)
        purchase = PurchaseService(db).create_pending(
            job,
            tier=body.tier,
            variant_index=body.variant_index,
            amount=body.amount,
            currency=body.currency,
            provider_session_id=body.provider_session_id,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return purchase_out(purchase)


@router.post("/purchases/{job_id}/gift", response_model=PurchaseOut, status_code=201)
def create_gift_purchase(
    job_id: str,
    body: CheckoutIn,
    db: Session = Depends(get_db),
) -> PurchaseOut:
    """
    Gift checkout by a third party who only knows the job id (shared link).
    The purchaser gets no access; the unlock goes to the job owner.
    """
    job = JobService(db).get(job_id)
    if job is None:
        raise http_error(NotFound("Job not found."))
    if not body.purchaser_email:
        raise http_error(ValidationFailed("purchaser_email is required for a gift"))
    try:
        purchase = PurchaseService(db).create_pending(
            job,
            tier=body.tier,
            variant_index=body.variant_index,
            amount=body.amount,
            currency=body.currency,
            provider_session_id=body.provider_session_id,
            is_gift=True,
            purchaser_email=body.purchaser_email,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return purchase_out(purchase)
