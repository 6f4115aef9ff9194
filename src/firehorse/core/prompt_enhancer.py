"""Themed prompt enhancement for the Fire Horse art generator.

Every prompt sent to a provider is wrapped in the Fire Horse theme.  The
enhancer is a pure string transformation; it never touches the network or
the store.

Enhancement Rules
-----------------
If the user's prompt already mentions the theme (any of the keywords in
:data:`THEME_KEYWORDS`, matched case-insensitively), it is kept as written
and a style suffix is appended::

    [Prompt], [Style Phrase], Chinese New Year theme, [Size] quality, detailed

Otherwise the fixed theme phrase is prepended::

    Fire Dragon Horse, [Prompt], golden scales, flames, [Style Phrase],
    Chinese New Year theme, [Size] quality

Usage
-----
::

    enhanced = enhance_prompt("a red lantern festival", style="chinese", size="2K")
"""

from __future__ import annotations

from firehorse.core.errors import ValidationError

MIN_PROMPT_LENGTH = 3

DEFAULT_STYLE = "digital"
DEFAULT_SIZE = "2K"
VALID_SIZES: tuple[str, ...] = ("1K", "2K", "4K")

# Keywords that mark a prompt as already on-theme.  The CJK entries cover the
# original Chinese-language gallery (dragon, horse, fire).
THEME_KEYWORDS: tuple[str, ...] = ("dragon", "horse", "fire", "龙", "马", "火")

# ---------------------------------------------------------------------------
# Style phrases.
# These are constants rather than configuration because they define the
# visual identity of each gallery style.  Unknown styles use the digital one.
# ---------------------------------------------------------------------------
STYLE_PHRASES: dict[str, str] = {
    "digital": "vibrant digital art, glowing crypto symbols",
    "chinese": "traditional Chinese ink painting, auspicious clouds",
    "cyberpunk": "cyberpunk mechanical armour, neon city lights",
    "fantasy": "epic fantasy scene, magic runes, starry sky",
}

STYLES: tuple[str, ...] = tuple(STYLE_PHRASES)


def normalize_style(style: str | None) -> str:
    """Return *style* lower-cased, or :data:`DEFAULT_STYLE` when empty."""
    cleaned = (style or "").strip().lower()
    return cleaned or DEFAULT_STYLE


def normalize_size(size: str | None) -> str:
    """Return a valid size tag, defaulting unknown values to ``2K``."""
    cleaned = (size or "").strip().upper()
    return cleaned if cleaned in VALID_SIZES else DEFAULT_SIZE


def validate_prompt(prompt: str | None) -> str:
    """Strip *prompt* and enforce the minimum length.

    Raises:
        ValidationError: If the prompt is missing or shorter than
            :data:`MIN_PROMPT_LENGTH` characters.
    """
    stripped = (prompt or "").strip()
    if len(stripped) < MIN_PROMPT_LENGTH:
        raise ValidationError(f"Prompt is required (min {MIN_PROMPT_LENGTH} characters)")
    return stripped


def has_theme_keyword(prompt: str) -> bool:
    """Check whether *prompt* already mentions the Fire Horse theme."""
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in THEME_KEYWORDS)


def enhance_prompt(prompt: str, *, style: str | None = None, size: str | None = None) -> str:
    """Wrap a user prompt in the Fire Horse theme.

    Args:
        prompt: Raw user prompt.  Leading and trailing whitespace is removed.
        style: Gallery style tag.  Unknown tags use the ``digital`` phrase.
        size: Size tag (``1K``, ``2K`` or ``4K``).  Unknown values use ``2K``.

    Returns:
        The enhanced prompt string that is sent to the provider.
    """
    stripped = prompt.strip()
    style_phrase = STYLE_PHRASES.get(normalize_style(style), STYLE_PHRASES[DEFAULT_STYLE])
    size_tag = normalize_size(size)

    if has_theme_keyword(stripped):
        return f"{stripped}, {style_phrase}, Chinese New Year theme, {size_tag} quality, detailed"

    return (
        f"Fire Dragon Horse, {stripped}, golden scales, flames, {style_phrase}, "
        f"Chinese New Year theme, {size_tag} quality"
    )
