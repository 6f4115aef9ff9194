"""Base classes and registry for image provider clients.

Each external image API (Gemini-compatible, OpenAI, Stability AI, ComfyUI)
has its own client that implements a common interface while handling the
provider-specific request and response shapes.

Provider Client Pattern
-----------------------
A client performs exactly one generation attempt per :meth:`generate` call.
The base class owns everything that is common to all providers:

- refusing to make any request when no API key is configured
- the bounded per-attempt timeout (``ProviderConfig.timeout``)
- translating httpx transport errors and HTTP error statuses into the
  :class:`~firehorse.core.errors.ProviderError` family

Subclasses only implement :meth:`ProviderClientBase._generate` (and
optionally :meth:`ProviderClientBase._check`).

Usage Example
-------------
    >>> from firehorse.core.providers import provider_registry
    >>> from firehorse.core.config import config
    >>>
    >>> client = provider_registry.instantiate(config.primary_provider())
    >>> result = await client.generate("Fire Dragon Horse, ...", size="2K")
    >>> result.image_ref[:5]
    'data:'

See Also
--------
- firehorse.core.providers.parsers: response-shape parsers
- firehorse.core.generation: the orchestrator that chains clients
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from firehorse.core.config import ProviderConfig
from firehorse.core.errors import (
    NoImageInResponse,
    ProviderError,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

# HTTP statuses after which retrying another configuration of the same
# deployment is pointless (bad credentials, unpaid account).
UNRECOVERABLE_STATUSES = frozenset({401, 402, 403})
UNRECOVERABLE_MARKERS = ("quota", "billing", "payment", "insufficient", "credit")


@dataclass(frozen=True)
class ImageResult:
    """A successfully generated image.

    Attributes:
        image_ref: Remote URL or ``data:`` URI.
        provider: Display name of the provider that produced it.
        source: Provider kind, e.g. ``"gemini"``.
    """

    image_ref: str
    provider: str
    source: str


def rejection_from_response(provider: str, response: httpx.Response) -> ProviderRejected:
    """Build a :class:`ProviderRejected` from an HTTP error response.

    The error message is taken from the usual ``{"error": {"message": ...}}``
    envelope when present.  Authorization and payment failures are flagged
    as unrecoverable.
    """
    message = ""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_obj = payload.get("error")
        if isinstance(error_obj, dict):
            message = str(error_obj.get("message") or error_obj.get("code") or "")
        elif isinstance(error_obj, str):
            message = error_obj
        if not message and payload.get("message"):
            message = str(payload["message"])
    if not message:
        message = response.text[:200]

    lowered = message.lower()
    unrecoverable = response.status_code in UNRECOVERABLE_STATUSES or any(
        marker in lowered for marker in UNRECOVERABLE_MARKERS
    )
    return ProviderRejected(
        f"{provider} error ({response.status_code}): {message}".strip(),
        provider=provider,
        status_code=response.status_code,
        unrecoverable=unrecoverable,
    )


class ProviderClientBase(ABC):
    """Abstract base class for all provider clients.

    Attributes
    ----------
    kind : str
        Registry key, matching ``ProviderConfig.kind``
    description : str
        Short human-readable description
    requires_api_key : bool
        When ``True`` a missing key makes every attempt fail immediately
    provider : ProviderConfig
        Endpoint, credentials, model and timeout for this client
    """

    kind: str = "base"
    description: str = "Base class for provider clients"
    requires_api_key: bool = True

    def __init__(
        self,
        provider: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider client.

        Args:
            provider: Immutable provider configuration.
            transport: Optional httpx transport, used by tests to stub the
                network.
        """
        self.provider = provider
        self._transport = transport

    @property
    def name(self) -> str:
        return self.provider.display_name

    @property
    def is_configured(self) -> bool:
        """Whether the client has everything it needs to make a request."""
        return bool(self.provider.api_key) or not self.requires_api_key

    def auth_headers(self) -> dict[str, str]:
        if not self.provider.api_key:
            return {}
        return {"Authorization": f"Bearer {self.provider.api_key}"}

    def client(self, timeout: float | None = None) -> httpx.AsyncClient:
        """Create an ``httpx.AsyncClient`` bound to this provider's timeout."""
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.provider.timeout,
            transport=self._transport,
        )

    def raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise rejection_from_response(self.name, response)

    def json_body(self, response: httpx.Response) -> Any:
        """Decode a JSON body, treating undecodable replies as image-less."""
        try:
            return response.json()
        except ValueError as e:
            raise NoImageInResponse(
                f"{self.name} returned a non-JSON body", provider=self.name
            ) from e

    async def generate(self, prompt: str, *, size: str = "2K", style: str = "digital") -> ImageResult:
        """Perform one generation attempt.

        Args:
            prompt: Enhanced prompt to send.
            size: Size tag (``1K``, ``2K``, ``4K``).
            style: Gallery style tag.

        Returns:
            The generated image.

        Raises:
            ProviderUnavailable: No API key, or the provider could not be reached.
            ProviderRejected: The provider answered with an error status.
            NoImageInResponse: The reply contained no recognisable image.
            ProviderTimeout: The attempt exceeded ``ProviderConfig.timeout``.
        """
        if not self.is_configured:
            raise ProviderUnavailable(f"{self.name}: no API key configured", provider=self.name)

        logger.info(f"Requesting image from {self.name} ({self.kind}, model={self.provider.model})")
        try:
            image_ref = await asyncio.wait_for(
                self._generate(prompt, size=size, style=style),
                timeout=self.provider.timeout,
            )
        except ProviderError:
            raise
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ProviderTimeout(
                f"{self.name} timed out after {self.provider.timeout:g}s", provider=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"{self.name} request failed: {e}", provider=self.name) from e
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            # Reply had an unexpected shape.
            raise NoImageInResponse(
                f"{self.name} returned an unexpected reply: {e}", provider=self.name
            ) from e

        return ImageResult(image_ref=image_ref, provider=self.name, source=self.kind)

    @abstractmethod
    async def _generate(self, prompt: str, *, size: str, style: str) -> str:
        """Send the provider-specific request and return an image reference."""

    async def check(self) -> dict[str, Any]:
        """Make a cheap request to confirm the provider is reachable.

        Returns:
            Dictionary with ``success``, ``provider``, ``kind`` and either
            ``status`` or ``error``.  Never raises.
        """
        info: dict[str, Any] = {"provider": self.name, "kind": self.kind}
        if not self.is_configured:
            return {**info, "success": False, "error": "No API key configured"}
        try:
            status = await self._check()
        except ProviderError as e:
            return {**info, "success": False, "error": str(e)}
        except httpx.HTTPError as e:
            return {**info, "success": False, "error": f"API connection failed: {e}"}
        return {**info, "success": True, "status": status}

    async def _check(self) -> int:
        async with self.client(timeout=10.0) as client:
            response = await client.get(self.provider.base_url, headers=self.auth_headers())
        self.raise_for_status(response)
        return response.status_code

    def get_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "description": self.description,
            "base_url": self.provider.base_url,
            "model": self.provider.model,
            "configured": self.is_configured,
            "api_key_preview": self.provider.key_preview,
        }


class ProviderRegistry:
    """Registry mapping provider kinds to client classes.

    Usage
    -----
    Registering a new client:

        >>> provider_registry.register(MyProviderClient)

    Building a client from configuration:

        >>> client = provider_registry.instantiate(provider_config)
    """

    def __init__(self) -> None:
        self._clients: dict[str, type[ProviderClientBase]] = {}

    def register(self, client_class: type[ProviderClientBase]) -> type[ProviderClientBase]:
        """Register a provider client class under its ``kind``.

        Returns the class unchanged so this can be used as a decorator.
        """
        kind = client_class.kind
        if kind in self._clients:
            logger.warning(f"Provider client '{kind}' is already registered, overwriting")
        self._clients[kind] = client_class
        logger.debug(f"Registered provider client: {kind}")
        return client_class

    def instantiate(
        self,
        provider: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProviderClientBase:
        """Create a client for *provider*.

        Raises
        ------
        KeyError
            If no client is registered for ``provider.kind``
        """
        if provider.kind not in self._clients:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Provider client '{provider.kind}' not found. Available clients: {available}"
            )
        return self._clients[provider.kind](provider, transport=transport)

    def build_chain(
        self,
        providers: tuple[ProviderConfig, ...],
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> list[ProviderClientBase]:
        """Instantiate one client per configuration, preserving order."""
        return [self.instantiate(provider, transport=transport) for provider in providers]

    def list_available(self) -> list[str]:
        return list(self._clients.keys())


# Global provider registry instance
provider_registry = ProviderRegistry()
