"""
Shared route dependencies: storage, shared-secret guards, error translation.
"""
from fastapi import Header, HTTPException

from babypeek.core.config import settings
from babypeek.services.errors import ServiceError
from babypeek.services.jobs.service import tokens_match
from babypeek.storage import Storage, get_storage

SESSION_HEADER = "X-Session-Token"


def storage_dep() -> Storage:
    return get_storage()


def http_error(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.detail())


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail={"code": "UNAUTHORIZED", "message": "unauthorized"})


def require_worker_secret(x_worker_secret: str | None = Header(default=None)) -> None:
    if not tokens_match(settings.worker_callback_secret, x_worker_secret):
        raise _unauthorized()


def require_webhook_secret(x_webhook_secret: str | None = Header(default=None)) -> None:
    if not tokens_match(settings.payment_webhook_secret, x_webhook_secret):
        raise _unauthorized()


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    if settings.admin_api_key and not tokens_match(settings.admin_api_key, x_admin_key):
        raise HTTPException(status_code=401, detail="unauthorized")
