"""Best-effort generation pipeline with provider fallback.

A generation request always ends with an image.  The orchestrator walks
through the following states::

    ENHANCING -> ATTEMPTING(provider 1) -> ATTEMPTING(provider 2) ... -> PERSISTED
                          |                                       |
                          +------------> FALLBACK ----------------+

- **ENHANCING**: the raw prompt is wrapped in the Fire Horse theme.
- **ATTEMPTING**: each configured provider is tried once, in order.  The
  first image wins.  A recoverable failure (timeout, unreadable reply,
  generic rejection) moves on to the next provider; an unrecoverable one
  (authorization or payment rejection) skips the rest.
- **FALLBACK**: a placeholder for the requested style is chosen and the
  stored prompt is annotated so the gallery can tell it apart.
- **PERSISTED**: the artwork row is written.  This state is always reached;
  provider failures are logged for operators but never surfaced to the
  caller.

Store failures are the one error that does propagate
(:class:`~firehorse.core.errors.StoreError`).
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from firehorse.core.artwork_store import Artwork, ArtworkStore
from firehorse.core.errors import ProviderError
from firehorse.core.fallback import annotate_fallback_prompt, select_fallback
from firehorse.core.prompt_enhancer import (
    enhance_prompt,
    normalize_size,
    normalize_style,
    validate_prompt,
)
from firehorse.core.providers.base import ProviderClientBase

logger = logging.getLogger(__name__)

FALLBACK_SOURCE = "fallback_demo"


class GenerationState(str, enum.Enum):
    ENHANCING = "enhancing"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    NEXT_PROVIDER = "next_provider"
    FALLBACK = "fallback"
    PERSISTED = "persisted"


@dataclass
class ImageResolution:
    """Outcome of running the provider chain for one prompt.

    Attributes:
        image_ref: Generated image, or the placeholder on fallback.
        source: Provider kind that produced the image, or ``"fallback_demo"``.
        provider: Display name of the successful provider, if any.
        is_fallback: Whether ``image_ref`` is a placeholder.
        errors: One message per failed attempt, in order.
        trace: States visited, for diagnostics and tests.
    """

    image_ref: str
    source: str
    provider: str | None = None
    is_fallback: bool = False
    errors: list[str] = field(default_factory=list)
    trace: list[GenerationState] = field(default_factory=list)


@dataclass
class GenerationResult:
    artwork: Artwork
    enhanced_prompt: str
    resolution: ImageResolution


class GenerationOrchestrator:
    """Run prompts through a chain of provider clients.

    Args:
        clients: Provider clients in priority order.  An empty chain always
            falls back.
    """

    def __init__(self, clients: Sequence[ProviderClientBase]) -> None:
        self.clients = list(clients)

    async def resolve_image(
        self,
        enhanced_prompt: str,
        *,
        size: str,
        style: str | None,
    ) -> ImageResolution:
        """Try each provider in turn and return the first image, or a placeholder.

        Args:
            enhanced_prompt: Prompt to send to the providers.
            size: Normalised size tag.
            style: Normalised style tag; ``None`` picks the size-keyed placeholder.

        Returns:
            An :class:`ImageResolution`.  Never raises for provider failures.
        """
        trace: list[GenerationState] = []
        errors: list[str] = []

        for index, client in enumerate(self.clients):
            trace.append(GenerationState.ATTEMPTING)
            try:
                result = await client.generate(
                    enhanced_prompt, size=size, style=style or "digital"
                )
            except ProviderError as e:
                errors.append(f"{client.name}: {e}")
                logger.warning(f"Provider {client.name} failed ({type(e).__name__}): {e}")
                if e.unrecoverable:
                    logger.warning(f"Provider {client.name} is unrecoverable; skipping remaining providers")
                    break
                if index < len(self.clients) - 1:
                    trace.append(GenerationState.NEXT_PROVIDER)
                continue

            trace.append(GenerationState.SUCCESS)
            logger.info(f"Image generated by {result.provider}")
            return ImageResolution(
                image_ref=result.image_ref,
                source=result.source,
                provider=result.provider,
                errors=errors,
                trace=trace,
            )

        trace.append(GenerationState.FALLBACK)
        fallback_style = normalize_style(style) if style is not None else None
        image_ref = select_fallback(fallback_style, size)
        logger.info(f"All providers failed; using placeholder for style={fallback_style} size={size}")
        return ImageResolution(
            image_ref=image_ref,
            source=FALLBACK_SOURCE,
            is_fallback=True,
            errors=errors,
            trace=trace,
        )

    async def generate(
        self,
        prompt: str,
        *,
        store: ArtworkStore,
        style: str | None = None,
        size: str | None = None,
        user_ip: str | None = None,
        user_agent: str | None = None,
    ) -> GenerationResult:
        """Enhance, generate (or fall back) and persist one artwork.

        Raises:
            ValidationError: If the prompt is shorter than three characters.
            StoreError: If the artwork cannot be written.
        """
        cleaned = validate_prompt(prompt)
        style_tag = normalize_style(style)
        size_tag = normalize_size(size)

        enhanced = enhance_prompt(cleaned, style=style_tag, size=size_tag)
        logger.info(f"Generating artwork: {enhanced[:80]!r}")

        resolution = await self.resolve_image(enhanced, size=size_tag, style=style_tag)
        resolution.trace.insert(0, GenerationState.ENHANCING)

        stored_prompt = annotate_fallback_prompt(enhanced) if resolution.is_fallback else enhanced
        artwork = await asyncio.to_thread(
            store.create_artwork,
            stored_prompt,
            resolution.image_ref,
            style_tag,
            user_ip,
            user_agent,
        )
        resolution.trace.append(GenerationState.PERSISTED)
        return GenerationResult(artwork=artwork, enhanced_prompt=enhanced, resolution=resolution)
