"""Tests for CleanupService: only expired jobs are removed, storage first."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from babypeek.models.job import Job
from babypeek.services.cleanup.service import CleanupService


def _expire(db_session, job, days=1):
    job.expires_at = datetime.now(timezone.utc) - timedelta(days=days)
    db_session.commit()


class TestCleanupService:
    def test_preview_counts_expired_only(self, db_session, storage, make_job):
        old = make_job(email="old@example.com")
        make_job(email="fresh@example.com")
        _expire(db_session, old)
        assert CleanupService(db_session, storage).preview_expired() == {"jobs_count": 1}

    def test_cleanup_removes_expired(self, db_session, storage, make_job):
        old = make_job(email="old@example.com")
        fresh = make_job(email="fresh@example.com")
        old_id, fresh_id = old.id, fresh.id
        _expire(db_session, old)

        report = CleanupService(db_session, storage).cleanup_expired()
        assert report["deleted_jobs"] == 1
        assert report["errors"] == []
        assert db_session.query(Job).filter(Job.id == old_id).count() == 0
        assert db_session.query(Job).filter(Job.id == fresh_id).count() == 1

    def test_storage_error_keeps_job(self, db_session, make_job):
        job = make_job()
        job_id = job.id
        _expire(db_session, job)
        storage = MagicMock()
        storage.delete_prefix.side_effect = OSError("bucket unavailable")

        report = CleanupService(db_session, storage).cleanup_expired()
        assert report["deleted_jobs"] == 0
        assert len(report["errors"]) == 1
        assert db_session.query(Job).filter(Job.id == job_id).count() == 1

    def test_limit(self, db_session, storage, make_job):
        for i in range(3):
            _expire(db_session, make_job(email=f"u{i}@example.com"))
        report = CleanupService(db_session, storage).cleanup_expired(limit=2)
        assert report["deleted_jobs"] == 2
