"""
Portrait variant generation with pluggable providers.
"""
from .base import (
    GeneratedVariant,
    GenerationError,
    VariantGenerator,
    VariantRequest,
)
from .failure_types import FailureType, classify_failure
from .providers.http import HttpVariantGenerator
from .runner import generate_with_retry


def create_generator_from_settings(settings) -> VariantGenerator:
    return HttpVariantGenerator(
        {
            "api_url": settings.generation_api_url,
            "api_key": settings.generation_api_key,
            "timeout": settings.generation_timeout,
        }
    )


__all__ = [
    "FailureType",
    "GeneratedVariant",
    "GenerationError",
    "HttpVariantGenerator",
    "VariantGenerator",
    "VariantRequest",
    "classify_failure",
    "create_generator_from_settings",
    "generate_with_retry",
]
