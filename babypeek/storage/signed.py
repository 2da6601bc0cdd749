"""
Local object storage with itsdangerous-signed, time-limited download URLs.
"""
import logging
import os
from datetime import datetime, timezone

from itsdangerous import BadSignature, URLSafeTimedSerializer

from babypeek.core.config import settings
from babypeek.storage.base import Storage

logger = logging.getLogger(__name__)


class InvalidSignedUrl(Exception):
    pass


class SignedUrlStorage(Storage):
    def __init__(
        self,
        base_path: str | None = None,
        public_base_url: str | None = None,
        secret: str | None = None,
    ) -> None:
        self.base_path = os.path.normpath(base_path or settings.storage_base_path)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self.serializer = URLSafeTimedSerializer(
            secret or settings.signed_url_secret,
            salt="object-url",
        )
        self.default_ttl = settings.signed_url_ttl_seconds

    def sign(self, object_ref: str, ttl_seconds: int | None = None) -> str:
        token = self.serializer.dumps({"ref": object_ref, "ttl": ttl_seconds or self.default_ttl})
        return f"{self.public_base_url}/files/{token}"

    def verify(self, token: str) -> str:
        """Return the object ref behind a signed token or raise InvalidSignedUrl."""
        try:
            data, signed_at = self.serializer.loads(token, return_timestamp=True)
            ref = data["ref"]
            ttl = int(data["ttl"])
        except (BadSignature, KeyError, TypeError, ValueError) as e:
            raise InvalidSignedUrl("invalid") from e
        age = (datetime.now(timezone.utc) - signed_at).total_seconds()
        if age > ttl:
            raise InvalidSignedUrl("expired")
        return ref

    def path_for(self, object_ref: str) -> str:
        path = os.path.normpath(os.path.join(self.base_path, object_ref))
        if not path.startswith(self.base_path + os.sep):
            raise InvalidSignedUrl("ref escapes storage root")
        return path

    def delete_prefix(self, prefix: str) -> int:
        root = self.path_for(prefix)
        if not os.path.isdir(root):
            return 0
        deleted = 0
        for dirpath, _, filenames in os.walk(root, topdown=False):
            for name in filenames:
                path = os.path.join(dirpath, name)
                try:
                    os.remove(path)
                    deleted += 1
                except OSError:
                    logger.warning("storage_delete_failed", extra={"path": path})
            try:
                os.rmdir(dirpath)
            except OSError:
                continue
        return deleted
