"""Provider clients for external image-generation APIs.

Importing this package registers the built-in clients with
:data:`provider_registry`.
"""

from firehorse.core.providers.base import (
    ImageResult,
    ProviderClientBase,
    ProviderRegistry,
    provider_registry,
)
from firehorse.core.providers.comfyui import ComfyUIClient
from firehorse.core.providers.gemini import GeminiClient
from firehorse.core.providers.openai_images import OpenAIClient
from firehorse.core.providers.parsers import RESPONSE_PARSERS, parse_image_response
from firehorse.core.providers.stability import StabilityClient

__all__ = [
    "ImageResult",
    "ProviderClientBase",
    "ProviderRegistry",
    "provider_registry",
    "ComfyUIClient",
    "GeminiClient",
    "OpenAIClient",
    "StabilityClient",
    "RESPONSE_PARSERS",
    "parse_image_response",
]
