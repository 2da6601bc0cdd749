"""
Payment confirmations from the payment provider (shared-secret guarded).
Delivery is at-least-once; PurchaseService transitions are idempotent.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babypeek.api.deps import http_error, require_webhook_secret
from babypeek.api.routes.purchases import purchase_out
from babypeek.db.session import get_db
from babypeek.schemas.purchases import PaymentWebhookIn, PurchaseOut
from babypeek.services.errors import ServiceError
from babypeek.services.purchases.service import PurchaseService

router = APIRouter(
    prefix="/webhooks/payments",
    tags=["webhooks"],
    dependencies=[Depends(require_webhook_secret)],
)


@router.post("/completed", response_model=PurchaseOut)
def payment_completed(body: PaymentWebhookIn, db: Session = Depends(get_db)) -> PurchaseOut:
    try:
        purchase = PurchaseService(db).mark_completed(
            purchase_id=body.purchase_id,
            provider_session_id=body.provider_session_id,
            provider_payment_ref=body.provider_payment_ref,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return purchase_out(purchase)


@router.post("/refunded", response_model=PurchaseOut)
def payment_refunded(body: PaymentWebhookIn, db: Session = Depends(get_db)) -> PurchaseOut:
    try:
        purchase = PurchaseService(db).mark_refunded(
            purchase_id=body.purchase_id,
            provider_session_id=body.provider_session_id,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return purchase_out(purchase)


@router.post("/failed", response_model=PurchaseOut)
def payment_failed(body: PaymentWebhookIn, db: Session = Depends(get_db)) -> PurchaseOut:
    try:
        purchase = PurchaseService(db).mark_failed(
            purchase_id=body.purchase_id,
            provider_session_id=body.provider_session_id,
            reason=body.reason,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return purchase_out(purchase)
