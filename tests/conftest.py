"""
Shared fixtures: env-based settings for tests, in-memory SQLite session,
FastAPI TestClient with db/storage overrides and the Celery enqueue stubbed.
"""
import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("WORKER_CALLBACK_SECRET", "test-worker-secret-0123456789")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret-0123456789")
os.environ.setdefault("SIGNED_URL_SECRET", "test-signed-url-secret-0123456789")
os.environ.setdefault("STORAGE_BASE_PATH", tempfile.mkdtemp(prefix="babypeek-test-"))
os.environ.setdefault("VARIANT_DESCRIPTORS", "v3,v3-json,v4,v4-json")

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import babypeek.models  # noqa: F401  (registers tables on Base.metadata)
from babypeek.db.base import Base
from babypeek.services.jobs.service import JobService
from babypeek.storage import SignedUrlStorage


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return SignedUrlStorage(
        base_path=str(tmp_path),
        public_base_url="http://testserver",
        secret="test-signed-url-secret-0123456789",
    )


@pytest.fixture
def make_job(db_session):
    def _make(email="parent@example.com", source_image_ref=None, variant_count=4):
        job = JobService(db_session).create_job(
            email=email,
            source_image_ref=source_image_ref or "uploads/pending/original.jpg",
            variant_count=variant_count,
        )
        if source_image_ref is None:
            job.source_image_ref = f"uploads/{job.id}/original.jpg"
            db_session.commit()
        return job

    return _make


@pytest.fixture
def enqueue_mock(monkeypatch):
    from babypeek.workers.tasks.process_job import process_job

    mock = MagicMock()
    monkeypatch.setattr(process_job, "apply_async", mock)
    return mock


@pytest.fixture
def client(db_session, storage, enqueue_mock):
    from fastapi.testclient import TestClient

    from babypeek.api.deps import storage_dep
    from babypeek.db.session import get_db
    from babypeek.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[storage_dep] = lambda: storage
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
