"""Configuration management for the Fire Horse art generator.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the FIREHORSE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (FIREHORSE_* prefix, plus a few legacy names)
2. .env file in the project root
3. Default values defined in FirehorseConfig

Example .env file:
    FIREHORSE_PROVIDER_KIND=gemini
    FIREHORSE_PROVIDER_BASE_URL=https://api.mmw.ink
    FIREHORSE_PROVIDER_MODEL=gemini-3-pro-image-preview-2k
    FIREHORSE_PROVIDER_API_KEY=sk-...
    FIREHORSE_SERVER_PORT=10000

Legacy Variable Names
---------------------
Earlier deployments were configured with ``PORT`` for the listening port and
``COMFY_API_KEY`` or ``API_KEY`` for the provider token.  These names are
still accepted as aliases.

Provider Chain
--------------
The primary provider is described by the ``provider_*`` fields.  Further
providers may be listed as JSON in ``FIREHORSE_EXTRA_PROVIDERS``::

    FIREHORSE_EXTRA_PROVIDERS='[{"name": "backup", "kind": "openai",
        "base_url": "https://api.openai.com", "model": "gpt-image-1",
        "api_key": "sk-..."}]'

:meth:`FirehorseConfig.provider_chain` returns the immutable, ordered tuple
of :class:`ProviderConfig` values that the generation orchestrator tries in
turn.

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from firehorse.core.config import config

    print(config.server_port)
    for provider in config.provider_chain():
        print(provider.display_name, provider.kind)
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderKind = Literal["gemini", "openai", "stability", "comfyui"]


class ProviderConfig(BaseModel):
    """Immutable description of one external image provider.

    Attributes:
        name: Label used in logs and in the ``source`` field of responses.
        kind: Which request/response shape to use.
        base_url: Provider root URL without a trailing slash.
        api_key: Bearer token.  ``None`` disables the provider.
        model: Model identifier understood by the provider.
        timeout: Per-attempt timeout in seconds.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    kind: ProviderKind = "gemini"
    base_url: str
    api_key: str | None = None
    model: str = ""
    timeout: float = Field(default=300.0, gt=0, le=600)

    @property
    def display_name(self) -> str:
        """Return the configured name, or the provider kind when unnamed."""
        return self.name or self.kind

    @property
    def key_preview(self) -> str:
        """Masked API key suitable for logs and status endpoints."""
        if not self.api_key:
            return "Not set"
        return self.api_key[:8] + "..."


class FirehorseConfig(BaseSettings):
    """Main configuration for the Fire Horse art generator.

    Attributes
    ----------
    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listening port (also read from ``PORT``)
        log_level : str
            Root logging level

    Storage:
        data_dir : Path
            Directory holding runtime data
        database_path : Path
            SQLite file holding artworks and votes
        seed_sample_artworks : bool
            Insert the demo artworks when the gallery is empty

    Primary Provider:
        provider_kind : str
            One of gemini, openai, stability, comfyui
        provider_base_url : str
            Provider root URL
        provider_model : str
            Model identifier
        provider_api_key : str | None
            Bearer token (also read from ``COMFY_API_KEY`` or ``API_KEY``)
        provider_timeout : float
            Per-attempt timeout in seconds

    Fallback Providers:
        extra_providers : list[ProviderConfig]
            Tried in order after the primary provider

    Notes
    -----
    - A missing API key does not prevent startup; generation degrades to
      fallback images.
    - Configuration is immutable after initialization.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FIREHORSE_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=10000,
        description="Server port",
        ge=1024,
        le=65535,
        validation_alias=AliasChoices("server_port", "FIREHORSE_SERVER_PORT", "PORT"),
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )

    # Storage
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for runtime data",
    )
    database_path: Path = Field(
        default=Path("data/gallery.db"),
        description="SQLite database holding artworks and votes",
    )
    seed_sample_artworks: bool = Field(
        default=True,
        description="Seed the gallery with demo artworks when it is empty",
    )

    # Primary provider
    provider_kind: ProviderKind = Field(
        default="gemini",
        description="Request/response shape of the primary provider",
    )
    provider_base_url: str = Field(
        default="https://api.mmw.ink",
        description="Primary provider root URL",
    )
    provider_model: str = Field(
        default="gemini-3-pro-image-preview-2k",
        description="Primary provider model identifier",
    )
    provider_api_key: str | None = Field(
        default=None,
        description="Primary provider bearer token",
        validation_alias=AliasChoices(
            "provider_api_key", "FIREHORSE_PROVIDER_API_KEY", "COMFY_API_KEY", "API_KEY"
        ),
    )
    provider_timeout: float = Field(
        default=300.0,
        description="Per-attempt timeout in seconds (image generation is slow)",
        gt=0,
        le=600,
    )

    # Additional providers, tried in order after the primary one
    extra_providers: list[ProviderConfig] = Field(
        default_factory=list,
        description="Further provider configurations (JSON list)",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def primary_provider(self) -> ProviderConfig:
        """Build the :class:`ProviderConfig` for the ``provider_*`` fields."""
        return ProviderConfig(
            name="primary",
            kind=self.provider_kind,
            base_url=self.provider_base_url.rstrip("/"),
            api_key=self.provider_api_key or None,
            model=self.provider_model,
            timeout=self.provider_timeout,
        )

    def provider_chain(self) -> tuple[ProviderConfig, ...]:
        """Return every provider configuration in the order they are tried."""
        extras = tuple(
            provider.model_copy(update={"base_url": provider.base_url.rstrip("/")})
            for provider in self.extra_providers
        )
        return (self.primary_provider(), *extras)


# Global configuration instance
config = FirehorseConfig()
