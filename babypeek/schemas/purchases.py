from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class CheckoutIn(BaseModel):
    tier: Literal["single", "all"] = "single"
    variant_index: int | None = Field(None, ge=0)  # single: None = primary
    amount: int = Field(0, ge=0)  # cents, decided by the payment provider
    currency: str = "usd"
    provider_session_id: str | None = None
    is_gift: bool = False
    purchaser_email: str | None = None
    gift_recipient_email: str | None = None

    @model_validator(mode="after")
    def check_scope(self) -> "CheckoutIn":
        if self.tier == "all" and self.variant_index is not None:
            raise ValueError("variant_index is only valid for the single tier")
        if self.is_gift and not self.purchaser_email:
            raise ValueError("gift purchases need purchaser_email")
        return self


class PurchaseOut(BaseModel):
    purchase_id: str
    job_id: str | None
    tier: str
    variant_index: int | None
    status: str
    is_gift: bool
    created_at: datetime | None = None
    completed_at: datetime | None = None
    refunded_at: datetime | None = None


class PaymentWebhookIn(BaseModel):
    """Payment confirmation: either our purchase id or the provider checkout session id."""

    purchase_id: str | None = None
    provider_session_id: str | None = None
    provider_payment_ref: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def check_reference(self) -> "PaymentWebhookIn":
        if not self.purchase_id and not self.provider_session_id:
            raise ValueError("purchase_id or provider_session_id is required")
        return self
