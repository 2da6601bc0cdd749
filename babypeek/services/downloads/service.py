"""
HD downloads: purchase-gated, available for a fixed window after the purchase
completed. Every issued link is recorded so re-downloads can be told apart.
"""
import hashlib
import hmac
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from babypeek.core.config import settings
from babypeek.models.download import Download
from babypeek.models.job import Job
from babypeek.models.purchase import Purchase
from babypeek.models.result import Result
from babypeek.paywall import granting_purchase_ids, resolve_access
from babypeek.pipeline.stages import JobStatus
from babypeek.services.errors import DownloadExpired, NotFound, PurchaseRequired, ServiceError
from babypeek.services.purchases.service import PurchaseService
from babypeek.services.results.service import ResultService
from babypeek.utils.metrics import downloads_total

logger = logging.getLogger(__name__)


def hash_ip(client_ip: str) -> str:
    """Keyed hash, the raw address is never stored."""
    return hmac.new(
        settings.signed_url_secret.encode(),
        client_ip.encode(),
        hashlib.sha256,
    ).hexdigest()


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DownloadGrant:
    result: Result
    purchase: Purchase
    window_expires_at: datetime
    download_count: int
    is_redownload: bool


@dataclass(frozen=True)
class DownloadStatus:
    can_download: bool
    is_expired: bool = False
    expires_at: datetime | None = None
    days_remaining: int | None = None
    error: str | None = None


class DownloadService:
    def __init__(self, db: Session):
        self.db = db

    def window_expires_at(self, purchase: Purchase) -> datetime:
        started = purchase.completed_at or purchase.created_at
        return _aware(started) + timedelta(days=settings.download_window_days)

    def grant(self, job: Job, variant_index: int | None = None, client_ip: str | None = None) -> DownloadGrant:
        """
        Record one HD download of a variant (primary by default).
        Raises NotFound, PurchaseRequired or DownloadExpired.
        """
        result, purchase, expires_at = self._resolve(job, variant_index)

        is_redownload = self.download_count(purchase.id) > 0
        ip_hash = hash_ip(client_ip) if client_ip else None
        self.db.add(
            Download(
                purchase_id=purchase.id,
                variant_index=result.variant_index,
                ip_hash=ip_hash,
            )
        )
        self.db.commit()
        count = self.download_count(purchase.id)

        downloads_total.labels(redownload="true" if is_redownload else "false").inc()
        logger.info(
            "download_issued",
            extra={
                "job_id": job.id,
                "purchase_id": purchase.id,
                "variant_index": result.variant_index,
                "count": count,
            },
        )
        if ip_hash:
            self._check_abuse(job.id, ip_hash)
        return DownloadGrant(
            result=result,
            purchase=purchase,
            window_expires_at=expires_at,
            download_count=count,
            is_redownload=is_redownload,
        )

    def status(self, job: Job, variant_index: int | None = None) -> DownloadStatus:
        """Same checks as grant, nothing recorded."""
        try:
            _, _, expires_at = self._resolve(job, variant_index)
        except DownloadExpired as e:
            return DownloadStatus(can_download=False, is_expired=True, expires_at=e.expired_at, error=e.code)
        except ServiceError as e:
            return DownloadStatus(can_download=False, error=e.code)
        remaining = expires_at - datetime.now(timezone.utc)
        return DownloadStatus(
            can_download=True,
            expires_at=expires_at,
            days_remaining=math.ceil(remaining.total_seconds() / 86400),
        )

    def download_count(self, purchase_id: str) -> int:
        return (
            self.db.query(func.count(Download.id))
            .filter(Download.purchase_id == purchase_id)
            .scalar()
            or 0
        )

    def history(self, purchase_id: str) -> list[Download]:
        return (
            self.db.query(Download)
            .filter(Download.purchase_id == purchase_id)
            .order_by(Download.downloaded_at.asc())
            .all()
        )

    def _resolve(self, job: Job, variant_index: int | None) -> tuple[Result, Purchase, datetime]:
        if job.status != JobStatus.COMPLETED.value:
            raise NotFound("We couldn't find your result. Try uploading again?")

        results = ResultService(self.db).list_for_job(job.id)
        purchases = PurchaseService(self.db)
        ctx = purchases.access_context(job, results)
        index = variant_index if variant_index is not None else ctx.primary_variant_index
        result = next((r for r in results if r.variant_index == index), None)
        if result is None:
            raise NotFound("We couldn't find your result. Try uploading again?")
        if not resolve_access(ctx).is_unlocked(index):
            raise PurchaseRequired()

        # the longest-running window wins when several purchases cover the variant
        granting = [purchases.get(pid) for pid in granting_purchase_ids(ctx, index)]
        purchase = max(
            (p for p in granting if p is not None),
            key=self.window_expires_at,
            default=None,
        )
        if purchase is None:
            raise PurchaseRequired()
        expires_at = self.window_expires_at(purchase)
        if datetime.now(timezone.utc) > expires_at:
            logger.info(
                "download_expired",
                extra={"job_id": job.id, "purchase_id": purchase.id},
            )
            raise DownloadExpired(expires_at)
        return result, purchase, expires_at

    def _check_abuse(self, job_id: str, ip_hash: str) -> None:
        """Logged only, never blocks the download."""
        since = datetime.now(timezone.utc) - timedelta(hours=1)
        recent = (
            self.db.query(func.count(Download.id))
            .filter(Download.ip_hash == ip_hash, Download.downloaded_at > since)
            .scalar()
            or 0
        )
        if recent > settings.download_abuse_threshold:
            logger.warning("download_abuse_detected", extra={"job_id": job_id, "count": recent})
