from abc import ABC, abstractmethod


def upload_prefix(job_id: str) -> str:
    return f"uploads/{job_id}/"


def result_prefix(job_id: str) -> str:
    return f"results/{job_id}/"


class Storage(ABC):
    """Object storage boundary. The core only keeps opaque object refs, never bytes."""

    @abstractmethod
    def sign(self, object_ref: str, ttl_seconds: int | None = None) -> str:
        """Return a short-lived URL for object_ref."""
        raise NotImplementedError

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Delete every object under prefix; returns the number deleted."""
        raise NotImplementedError

    @abstractmethod
    def verify(self, token: str) -> str:
        """Return the object ref behind a signed token; raise if invalid or expired."""
        raise NotImplementedError

    @abstractmethod
    def path_for(self, object_ref: str) -> str:
        """Local filesystem path of object_ref."""
        raise NotImplementedError
