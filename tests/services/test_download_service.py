"""Tests for DownloadService: purchase gate, 30-day window, re-download tracking."""
from datetime import datetime, timedelta, timezone

import pytest

from babypeek.models.download import Download
from babypeek.pipeline import JobStage, StageEngine, VariantPayload
from babypeek.services.downloads.service import DownloadService, hash_ip
from babypeek.services.errors import DownloadExpired, NotFound, PurchaseRequired
from babypeek.services.purchases.service import PurchaseService


@pytest.fixture
def completed_job(db_session, make_job):
    job = make_job(variant_count=2)
    engine = StageEngine(db_session)
    engine.advance(job.id, JobStage.VALIDATING)
    engine.advance(job.id, JobStage.GENERATING)
    for i in range(2):
        engine.record_variant(
            job.id,
            VariantPayload(variant_index=i, result_ref=f"results/{job.id}/{i}.jpg"),
        )
    engine.advance(job.id, JobStage.COMPLETE)
    db_session.refresh(job)
    return job


def _paid(db_session, job, **kwargs):
    svc = PurchaseService(db_session)
    purchase = svc.create_pending(job, **kwargs)
    return svc.mark_completed(purchase_id=purchase.id)


class TestGrant:
    def test_requires_purchase(self, db_session, completed_job):
        with pytest.raises(PurchaseRequired):
            DownloadService(db_session).grant(completed_job)

    def test_requires_completed_job(self, db_session, make_job):
        with pytest.raises(NotFound):
            DownloadService(db_session).grant(make_job())

    def test_single_purchase_covers_primary_only(self, db_session, completed_job):
        _paid(db_session, completed_job, tier="single")
        svc = DownloadService(db_session)

        grant = svc.grant(completed_job)
        assert grant.result.variant_index == 0
        assert grant.download_count == 1
        assert grant.is_redownload is False
        with pytest.raises(PurchaseRequired):
            svc.grant(completed_job, variant_index=1)

    def test_redownload_tracked(self, db_session, completed_job):
        purchase = _paid(db_session, completed_job, tier="all")
        svc = DownloadService(db_session)
        svc.grant(completed_job, variant_index=0, client_ip="203.0.113.7")
        again = svc.grant(completed_job, variant_index=1, client_ip="203.0.113.7")

        assert again.is_redownload is True
        assert again.download_count == 2
        history = svc.history(purchase.id)
        assert [d.variant_index for d in history] == [0, 1]
        assert history[0].ip_hash == hash_ip("203.0.113.7")
        assert "203.0.113.7" not in history[0].ip_hash

    def test_window_closed(self, db_session, completed_job):
        purchase = _paid(db_session, completed_job, tier="single")
        purchase.completed_at = datetime.now(timezone.utc) - timedelta(days=31)
        db_session.commit()

        with pytest.raises(DownloadExpired) as exc_info:
            DownloadService(db_session).grant(completed_job)
        assert exc_info.value.detail()["code"] == "DOWNLOAD_EXPIRED"
        assert db_session.query(Download).count() == 0

    def test_newest_purchase_extends_window(self, db_session, completed_job):
        old = _paid(db_session, completed_job, tier="single", provider_session_id="cs_old")
        old.completed_at = datetime.now(timezone.utc) - timedelta(days=40)
        db_session.commit()
        fresh = _paid(db_session, completed_job, tier="all", provider_session_id="cs_new")

        grant = DownloadService(db_session).grant(completed_job)
        assert grant.purchase.id == fresh.id

    def test_refund_revokes(self, db_session, completed_job):
        purchase = _paid(db_session, completed_job, tier="all")
        PurchaseService(db_session).mark_refunded(purchase_id=purchase.id)
        with pytest.raises(PurchaseRequired):
            DownloadService(db_session).grant(completed_job)


class TestStatus:
    def test_open_window(self, db_session, completed_job):
        _paid(db_session, completed_job, tier="single")
        status = DownloadService(db_session).status(completed_job)
        assert status.can_download is True
        assert status.days_remaining == 30
        assert status.error is None
        assert db_session.query(Download).count() == 0

    def test_expired(self, db_session, completed_job):
        purchase = _paid(db_session, completed_job, tier="single")
        purchase.completed_at = datetime.now(timezone.utc) - timedelta(days=45)
        db_session.commit()
        status = DownloadService(db_session).status(completed_job)
        assert status.can_download is False
        assert status.is_expired is True
        assert status.expires_at is not None

    def test_no_purchase(self, db_session, completed_job):
        status = DownloadService(db_session).status(completed_job)
        assert status.can_download is False
        assert status.error == "PURCHASE_REQUIRED"
