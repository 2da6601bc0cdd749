from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from babypeek.api.deps import require_admin, storage_dep
from babypeek.api.routes import health
from babypeek.db.session import get_db
from babypeek.services.cleanup.service import CleanupService
from babypeek.storage import Storage


app = FastAPI(title="Cleanup Service")
app.include_router(health.router, tags=["health"])


@app.post("/cleanup/run", dependencies=[Depends(require_admin)])
def run_cleanup(
    db: Session = Depends(get_db),
    storage: Storage = Depends(storage_dep),
    dry_run: bool = False,
    limit: int = 500,
) -> dict:
    """
    Удаляет job с истёкшим expires_at: сначала объекты в storage, затем строки.
    Покупки остаются (анонимизированы) для бухгалтерии.
    """
    service = CleanupService(db, storage)
    if dry_run:
        return service.preview_expired()
    return service.cleanup_expired(limit=limit)
