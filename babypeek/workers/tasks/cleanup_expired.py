"""
Celery beat task: retention cleanup of jobs past expires_at.
"""
import logging

from babypeek.core.celery_app import CLEANUP_TASK, celery_app
from babypeek.db.session import SessionLocal
from babypeek.services.cleanup.service import CleanupService
from babypeek.storage import get_storage

logger = logging.getLogger(__name__)


@celery_app.task(name=CLEANUP_TASK)
def cleanup_expired(limit: int = 500) -> dict:
    db = SessionLocal()
    try:
        result = CleanupService(db, get_storage()).cleanup_expired(limit=limit)
        return {"ok": not result["errors"], **result}
    except Exception:
        logger.exception("cleanup_expired_failed")
        db.rollback()
        return {"ok": False, "error": "cleanup_failed"}
    finally:
        db.close()
