"""
Generation runner: generate-with-retry, failure classification, circuit breaker
and observability for one variant.
"""
import logging
import random
import time
from typing import Any

import pybreaker

from babypeek.services.generation.base import (
    GeneratedVariant,
    GenerationError,
    VariantGenerator,
    VariantRequest,
)
from babypeek.services.generation.failure_types import FailureType, classify_failure
from babypeek.utils.metrics import generation_duration_seconds

logger = logging.getLogger(__name__)


def generate_with_retry(
    provider: VariantGenerator,
    request: VariantRequest,
    settings: Any,
    *,
    breaker: pybreaker.CircuitBreaker | None = None,
    sleep=time.sleep,
) -> GeneratedVariant:
    """
    Generate one variant with a bounded retry budget.
    Only transient failures are retried; an open breaker fails fast.
    """
    max_attempts = getattr(settings, "generation_retry_max_attempts", 2)
    backoff_seconds = getattr(settings, "generation_retry_backoff_seconds", 2.0)

    attempt = 0
    while True:
        attempt += 1
        started = time.monotonic()
        try:
            if breaker is not None:
                result = breaker.call(provider.generate, request)
            else:
                result = provider.generate(request)
        except pybreaker.CircuitBreakerError as e:
            logger.warning(
                "generation_breaker_open",
                extra={"job_id": request.job_id, "variant_index": request.variant_index},
            )
            raise GenerationError("generation provider unavailable", {"breaker_open": True}) from e
        except GenerationError as e:
            detail = e.detail
            failure_type, retry_allowed = classify_failure(detail.get("http_status"), detail)
            detail["failure_type"] = failure_type.value
            logger.warning(
                "generation_attempt_failed",
                extra={
                    "job_id": request.job_id,
                    "variant_index": request.variant_index,
                    "attempt": attempt,
                    "failure_type": failure_type.value,
                    "error": str(e),
                },
            )
            if not retry_allowed or attempt >= max_attempts:
                raise

            delay = backoff_seconds * (2 ** (attempt - 1))
            if failure_type == FailureType.TRANSPORT_TRANSIENT and detail.get("retry_after"):
                try:
                    delay = float(detail["retry_after"])
                except (TypeError, ValueError):
                    pass
            delay += random.uniform(0, 1)
            logger.info(
                "generation_retry_scheduled",
                extra={
                    "job_id": request.job_id,
                    "variant_index": request.variant_index,
                    "attempt": attempt,
                    "delay_seconds": round(delay, 2),
                },
            )
            sleep(delay)
            continue

        elapsed = time.monotonic() - started
        generation_duration_seconds.labels(variant_descriptor=request.variant_descriptor).observe(elapsed)
        if result.generation_time_ms is None:
            result.generation_time_ms = int(elapsed * 1000)
        if attempt > 1:
            logger.info(
                "generation_success_after_retry",
                extra={"job_id": request.job_id, "variant_index": request.variant_index, "attempt": attempt},
            )
        return result
