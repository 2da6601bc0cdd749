from babypeek.storage.base import Storage, result_prefix, upload_prefix
from babypeek.storage.signed import InvalidSignedUrl, SignedUrlStorage


def get_storage() -> Storage:
    return SignedUrlStorage()


__all__ = [
    "InvalidSignedUrl",
    "SignedUrlStorage",
    "Storage",
    "get_storage",
    "result_prefix",
    "upload_prefix",
]
