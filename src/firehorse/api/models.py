"""Pydantic request models for the Fire Horse API.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``: generate and store a gallery artwork.
QuickGenerateRequest
    Payload for the standalone ``POST /generate``: generate without storing.

Prompt length is deliberately not constrained here.  The minimum length is
enforced by :func:`firehorse.core.prompt_enhancer.validate_prompt` so both
endpoints report the same error message.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        prompt: Free-text description (at least three characters).
        style: Gallery style tag.  Defaults to ``"digital"``.
        user_agent: Client description.  The ``User-Agent`` header is used
            when omitted.
        image_size: ``"1K"``, ``"2K"`` or ``"4K"``.  Unknown values use ``"2K"``.
    """

    prompt: str | None = Field(
        default=None,
        description="Artwork description (min 3 characters).",
    )
    style: str = Field(
        default="digital",
        description="Style tag: digital, chinese, cyberpunk or fantasy.",
    )
    user_agent: str | None = Field(
        default=None,
        description="Client user agent; defaults to the User-Agent header.",
    )
    image_size: str = Field(
        default="2K",
        description="Requested size: 1K, 2K or 4K.",
    )


class QuickGenerateRequest(BaseModel):
    """Request body for the standalone ``POST /generate`` endpoint."""

    prompt: str | None = Field(
        default=None,
        description="Image description (min 3 characters).",
    )
    image_size: str = Field(
        default="2K",
        description="Requested size: 1K, 2K or 4K.",
    )
