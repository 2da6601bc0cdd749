"""
Failure normalization for the generation runner.
Classifies provider and transport failures for retry policy and observability.
"""
from enum import Enum
from typing import Any


class FailureType(str, Enum):
    TRANSPORT_TRANSIENT = "transport_transient"  # 429, 5xx, timeout
    CONTENT_BLOCKED = "content_blocked"  # provider refused the input or output
    CLIENT_NON_RETRIABLE = "client_non_retriable"  # 4xx except 429
    INVALID_RESPONSE = "invalid_response"  # 2xx without a usable result


def classify_failure(
    http_status: int | None,
    detail: dict[str, Any],
) -> tuple[FailureType, bool]:
    """Returns (failure_type, retry_allowed)."""
    if http_status is not None:
        if http_status == 429 or 500 <= http_status < 600:
            return (FailureType.TRANSPORT_TRANSIENT, True)
        if 400 <= http_status < 500:
            return (FailureType.CLIENT_NON_RETRIABLE, False)

    if detail.get("blocked"):
        return (FailureType.CONTENT_BLOCKED, False)
    if detail.get("invalid_response"):
        return (FailureType.INVALID_RESPONSE, False)

    # No detail (e.g. network error, timeout): treat as transient, allow retry
    return (FailureType.TRANSPORT_TRANSIENT, True)
