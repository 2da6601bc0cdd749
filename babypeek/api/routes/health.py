import os

from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from babypeek.core.config import settings
from babypeek.db.session import get_db


router = APIRouter()


def _redis_ok() -> bool:
    client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return bool(client.ping())


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness probe - 503 while the database, Redis (broker, breaker state) or storage is unavailable."""
    checks: dict[str, str] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"
    try:
        _redis_ok()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {type(e).__name__}"
    checks["storage"] = "ok" if os.path.isdir(settings.storage_base_path) else "error: missing"

    if all(v == "ok" for v in checks.values()):
        return {"status": "ready", "checks": checks}
    response.status_code = 503
    return {"status": "not_ready", "checks": checks}
