"""Placeholder images used when no provider returns an image.

Selection is deterministic: the same style (or size) always maps to the same
placeholder, which keeps tests and repeated requests reproducible.
"""

from __future__ import annotations

from firehorse.core.prompt_enhancer import DEFAULT_SIZE, DEFAULT_STYLE, normalize_size

_UNSPLASH = "https://images.unsplash.com/{photo}?ixlib=rb-4.0.3&auto=format&fit=crop&w={width}&q=80"

STYLE_PLACEHOLDERS: dict[str, str] = {
    "digital": _UNSPLASH.format(photo="photo-1546182990-dffeafbe841d", width=800),
    "chinese": _UNSPLASH.format(photo="photo-1545569341-9eb8b30979d9", width=800),
    "cyberpunk": _UNSPLASH.format(photo="photo-1518709268805-4e9042af2176", width=800),
    "fantasy": _UNSPLASH.format(photo="photo-1506905925346-21bda4d32df4", width=800),
}

# Used by the standalone /generate endpoint, which has a size but no style.
SIZE_PLACEHOLDERS: dict[str, str] = {
    "1K": _UNSPLASH.format(photo="photo-1546182990-dffeafbe841d", width=1024),
    "2K": _UNSPLASH.format(photo="photo-1545569341-9eb8b30979d9", width=1024),
    "4K": _UNSPLASH.format(photo="photo-1518709268805-4e9042af2176", width=1024),
}

FALLBACK_ANNOTATION = " (demo mode)"


def select_fallback(style: str | None = None, size: str | None = None) -> str:
    """Pick the placeholder image for a style, or for a size when no style is given.

    Args:
        style: Gallery style tag.  Unrecognised styles use the ``digital`` image.
        size: Size tag, consulted only when *style* is ``None``.

    Returns:
        A remote image URL.
    """
    if style is None:
        return SIZE_PLACEHOLDERS.get(normalize_size(size), SIZE_PLACEHOLDERS[DEFAULT_SIZE])
    return STYLE_PLACEHOLDERS.get(style.strip().lower(), STYLE_PLACEHOLDERS[DEFAULT_STYLE])


def annotate_fallback_prompt(prompt: str) -> str:
    """Mark a prompt as belonging to a placeholder rather than a generated image."""
    if prompt.endswith(FALLBACK_ANNOTATION):
        return prompt
    return prompt + FALLBACK_ANNOTATION
