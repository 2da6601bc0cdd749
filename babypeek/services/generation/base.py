"""
Base classes and types for portrait variant generation providers.
The generative model itself is external; providers only move refs and timings.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class VariantRequest:
    """One variant to generate from the uploaded source image."""
    job_id: str
    variant_index: int
    variant_descriptor: str
    source_image_ref: str
    extra_params: dict[str, Any] | None = None


@dataclass
class GeneratedVariant:
    """Provider output: object refs, never bytes."""
    result_ref: str
    preview_ref: str | None = None
    generation_time_ms: int | None = None
    file_size_bytes: int | None = None


class GenerationError(Exception):
    """Raised when generation fails; detail holds http_status / retry_after for the runner."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class VariantGenerator(ABC):
    """Base class for generation providers."""

    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass

    @abstractmethod
    def generate(self, request: VariantRequest) -> GeneratedVariant:
        """Generate one variant. Raises GenerationError on failure."""
        pass

    def close(self) -> None:
        """Release provider resources (HTTP clients). No-op by default."""
        pass
