"""Exception hierarchy for the Fire Horse art generator.

Only three kinds of failure ever reach an HTTP client:

- :class:`ValidationError` (400) for a missing or too-short prompt or query
- :class:`NotFoundError` (404) for an unknown artwork id
- :class:`StoreError` (500) when the SQLite store itself fails

Provider failures (:class:`ProviderError` and subclasses) are recovered by
the generation orchestrator and turned into a fallback artwork.
"""

from __future__ import annotations


class FirehorseError(Exception):
    """Base class for all application errors."""


class ValidationError(FirehorseError):
    """User input failed validation."""


class NotFoundError(FirehorseError):
    """The requested artwork does not exist."""

    def __init__(self, artwork_id: int) -> None:
        super().__init__(f"Artwork {artwork_id} not found")
        self.artwork_id = artwork_id


class StoreError(FirehorseError):
    """The persistence layer failed."""


class ProviderError(FirehorseError):
    """An image provider could not produce an image.

    Attributes:
        provider: Name of the provider configuration that failed.
        unrecoverable: When ``True`` the orchestrator skips any remaining
            providers and goes straight to the fallback image.
    """

    unrecoverable: bool = False

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailable(ProviderError):
    """Provider is not configured or could not be reached."""


class ProviderRejected(ProviderError):
    """Provider answered with an error status."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
        unrecoverable: bool = False,
    ) -> None:
        super().__init__(message, provider=provider)
        self.status_code = status_code
        self.unrecoverable = unrecoverable


class NoImageInResponse(ProviderError):
    """Provider answered successfully but no image could be found in the body."""


class ProviderTimeout(ProviderError):
    """Provider did not answer within the configured timeout."""
