"""Fire Horse art generator - themed AI image gallery with provider fallback."""

__version__ = "1.0.0"

from firehorse.core.config import FirehorseConfig, ProviderConfig, config
from firehorse.core.providers import ProviderClientBase, provider_registry

__all__ = [
    "FirehorseConfig",
    "ProviderConfig",
    "config",
    "ProviderClientBase",
    "provider_registry",
]
