"""
HTTP generation provider: posts the source ref and variant descriptor to an
external generation service and gets back stored object refs.
"""
import httpx

from babypeek.services.generation.base import (
    GeneratedVariant,
    GenerationError,
    VariantGenerator,
    VariantRequest,
)


class HttpVariantGenerator(VariantGenerator):
    def __init__(self, config: dict, transport: httpx.BaseTransport | None = None):
        super().__init__(config)
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.api_key = config.get("api_key")
        self.timeout = config.get("timeout", 180.0)
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def is_available(self) -> bool:
        return bool(self.api_url)

    def generate(self, request: VariantRequest) -> GeneratedVariant:
        if not self.is_available():
            raise GenerationError("generation provider not configured", {"invalid_response": True})

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "job_id": request.job_id,
            "variant_index": request.variant_index,
            "variant_descriptor": request.variant_descriptor,
            "source_image_ref": request.source_image_ref,
            # outputs land under results/{job_id}/ so deletion by prefix covers them
            "output_prefix": f"results/{request.job_id}/{request.variant_index}",
        }
        if request.extra_params:
            payload.update(request.extra_params)

        try:
            response = self.client.post(f"{self.api_url}/generate", headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise GenerationError("generation request timed out") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"generation transport error: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise GenerationError(
                f"generation failed with HTTP {response.status_code}",
                {
                    "http_status": response.status_code,
                    "retry_after": response.headers.get("Retry-After"),
                },
            )
        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("generation response is not JSON", {"invalid_response": True}) from e

        if data.get("blocked"):
            raise GenerationError("generation blocked by provider", {"blocked": True})
        result_ref = data.get("result_ref")
        if not result_ref:
            raise GenerationError("generation response has no result_ref", {"invalid_response": True})
        return GeneratedVariant(
            result_ref=result_ref,
            preview_ref=data.get("preview_ref"),
            generation_time_ms=data.get("generation_time_ms"),
            file_size_bytes=data.get("file_size_bytes"),
        )
