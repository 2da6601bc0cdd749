"""Tests for generate_with_retry and the HTTP provider."""
import json
from types import SimpleNamespace

import httpx
import pybreaker
import pytest

from babypeek.services.generation import (
    FailureType,
    GeneratedVariant,
    GenerationError,
    HttpVariantGenerator,
    VariantGenerator,
    VariantRequest,
    classify_failure,
    generate_with_retry,
)

SETTINGS = SimpleNamespace(generation_retry_max_attempts=3, generation_retry_backoff_seconds=0.5)


def _request(index=0):
    return VariantRequest(
        job_id="job-1",
        variant_index=index,
        variant_descriptor="v3",
        source_image_ref="uploads/job-1/original.jpg",
    )


class ScriptedGenerator(VariantGenerator):
    def __init__(self, *outcomes):
        super().__init__({})
        self.outcomes = list(outcomes)
        self.calls = 0

    def is_available(self) -> bool:
        return True

    def generate(self, request):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestClassifyFailure:
    def test_transient(self):
        assert classify_failure(429, {}) == (FailureType.TRANSPORT_TRANSIENT, True)
        assert classify_failure(503, {}) == (FailureType.TRANSPORT_TRANSIENT, True)
        assert classify_failure(None, {}) == (FailureType.TRANSPORT_TRANSIENT, True)

    def test_non_retriable(self):
        assert classify_failure(400, {}) == (FailureType.CLIENT_NON_RETRIABLE, False)
        assert classify_failure(None, {"blocked": True}) == (FailureType.CONTENT_BLOCKED, False)
        assert classify_failure(None, {"invalid_response": True}) == (FailureType.INVALID_RESPONSE, False)


class TestGenerateWithRetry:
    def test_retries_transient_then_succeeds(self):
        sleeps = []
        provider = ScriptedGenerator(
            GenerationError("busy", {"http_status": 503}),
            GeneratedVariant(result_ref="results/job-1/0.jpg"),
        )
        variant = generate_with_retry(provider, _request(), SETTINGS, sleep=sleeps.append)
        assert variant.result_ref == "results/job-1/0.jpg"
        assert variant.generation_time_ms is not None
        assert provider.calls == 2
        assert len(sleeps) == 1
        assert 0.5 <= sleeps[0] <= 1.5

    def test_retry_after_header_honored(self):
        sleeps = []
        provider = ScriptedGenerator(
            GenerationError("slow down", {"http_status": 429, "retry_after": "7"}),
            GeneratedVariant(result_ref="r"),
        )
        generate_with_retry(provider, _request(), SETTINGS, sleep=sleeps.append)
        assert 7 <= sleeps[0] <= 8

    def test_budget_exhausted(self):
        provider = ScriptedGenerator(*[GenerationError("down", {"http_status": 502}) for _ in range(3)])
        with pytest.raises(GenerationError) as exc:
            generate_with_retry(provider, _request(), SETTINGS, sleep=lambda _: None)
        assert provider.calls == 3
        assert exc.value.detail["failure_type"] == "transport_transient"

    def test_blocked_not_retried(self):
        provider = ScriptedGenerator(GenerationError("nope", {"blocked": True}))
        with pytest.raises(GenerationError):
            generate_with_retry(provider, _request(), SETTINGS, sleep=lambda _: None)
        assert provider.calls == 1

    def test_open_breaker_fails_fast(self):
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=60)
        breaker.open()
        provider = ScriptedGenerator(GeneratedVariant(result_ref="r"))
        with pytest.raises(GenerationError) as exc:
            generate_with_retry(provider, _request(), SETTINGS, breaker=breaker, sleep=lambda _: None)
        assert exc.value.detail == {"breaker_open": True}
        assert provider.calls == 0


class TestHttpVariantGenerator:
    def _generator(self, handler):
        return HttpVariantGenerator(
            {"api_url": "http://gen.local", "api_key": "k", "timeout": 5},
            transport=httpx.MockTransport(handler),
        )

    def test_success(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"result_ref": "results/job-1/0/full.jpg", "preview_ref": "results/job-1/0/p.jpg", "file_size_bytes": 2048},
            )

        gen = self._generator(handler)
        variant = gen.generate(_request())
        gen.close()
        assert variant.result_ref == "results/job-1/0/full.jpg"
        assert variant.file_size_bytes == 2048
        assert seen["auth"] == "Bearer k"
        assert seen["body"]["variant_descriptor"] == "v3"
        assert seen["body"]["output_prefix"] == "results/job-1/0"

    def test_http_error_carries_status(self):
        gen = self._generator(lambda request: httpx.Response(503, headers={"Retry-After": "3"}))
        with pytest.raises(GenerationError) as exc:
            gen.generate(_request())
        assert exc.value.detail == {"http_status": 503, "retry_after": "3"}

    def test_missing_result_ref(self):
        gen = self._generator(lambda request: httpx.Response(200, json={}))
        with pytest.raises(GenerationError) as exc:
            gen.generate(_request())
        assert exc.value.detail == {"invalid_response": True}

    def test_blocked(self):
        gen = self._generator(lambda request: httpx.Response(200, json={"blocked": True}))
        with pytest.raises(GenerationError) as exc:
            gen.generate(_request())
        assert exc.value.detail == {"blocked": True}

    def test_not_configured(self):
        gen = HttpVariantGenerator({"api_url": ""})
        assert gen.is_available() is False
        with pytest.raises(GenerationError):
            gen.generate(_request())
