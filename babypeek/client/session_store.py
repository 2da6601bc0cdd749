"""
Client session record: which job this client started and the credential for it.

The record is a cache, never a source of truth: every decision re-validates it
against the status endpoint. Lifecycle: created on upload, updated by polling,
removed on start-fresh, data deletion or successful terminal navigation. No TTL.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import redis
from itsdangerous import BadSignature, URLSafeSerializer
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SESSION_PREFIX = "babypeek-session-"
CURRENT_JOB_KEY = "babypeek-current-job"


class KeyValueStore(ABC):
    """Client-side key/value boundary (browser localStorage, app preferences, Redis)."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed store with itsdangerous-signed values (tamper-proof, no expiry).
    """

    def __init__(
        self,
        secret: str,
        redis_url: str | None = None,
        client: redis.Redis | None = None,
        namespace: str = "client",
    ) -> None:
        if client is None and not redis_url:
            raise ValueError("redis_url or client is required")
        self.client = client or redis.Redis.from_url(redis_url, decode_responses=True)
        self.namespace = namespace
        self.serializer = URLSafeSerializer(secret, salt="client-session")

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> str | None:
        raw = self.client.get(self._key(key))
        if not raw:
            return None
        try:
            value = self.serializer.loads(raw)
        except BadSignature:
            logger.warning("client_store_bad_signature", extra={"path": key})
            self.delete(key)
            return None
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), self.serializer.dumps(value))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def keys(self, prefix: str = "") -> list[str]:
        head = f"{self.namespace}:"
        return [k[len(head):] for k in self.client.scan_iter(match=f"{head}{prefix}*")]


class SessionRecord(BaseModel):
    job_id: str
    session_credential: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_known_status: str = "pending"
    last_known_result_id: str | None = None


class SessionStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{SESSION_PREFIX}{job_id}"

    def create(self, job_id: str, session_credential: str) -> SessionRecord:
        """Called on upload start; the new job becomes the current one."""
        record = SessionRecord(job_id=job_id, session_credential=session_credential)
        self._save(record)
        self.kv.set(CURRENT_JOB_KEY, job_id)
        return record

    def get(self, job_id: str) -> SessionRecord | None:
        raw = self.kv.get(self._key(job_id))
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("session_record_corrupt", extra={"job_id": job_id})
            self.clear(job_id)
            return None

    def current(self) -> SessionRecord | None:
        job_id = self.kv.get(CURRENT_JOB_KEY)
        if not job_id:
            return None
        record = self.get(job_id)
        if record is None:
            self.kv.delete(CURRENT_JOB_KEY)
        return record

    def update_status(
        self,
        job_id: str,
        status: str,
        result_id: str | None = None,
    ) -> SessionRecord | None:
        record = self.get(job_id)
        if record is None:
            return None
        record = record.model_copy(
            update={
                "last_known_status": status,
                "last_known_result_id": result_id or record.last_known_result_id,
            }
        )
        self._save(record)
        return record

    def clear(self, job_id: str) -> None:
        self.kv.delete(self._key(job_id))
        if self.kv.get(CURRENT_JOB_KEY) == job_id:
            self.kv.delete(CURRENT_JOB_KEY)

    def records(self) -> list[SessionRecord]:
        out = []
        for key in self.kv.keys(SESSION_PREFIX):
            record = self.get(key[len(SESSION_PREFIX):])
            if record is not None:
                out.append(record)
        return out

    def _save(self, record: SessionRecord) -> None:
        self.kv.set(self._key(record.job_id), record.model_dump_json())
