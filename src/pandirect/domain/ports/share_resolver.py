"""Port for resolving a provider share into a direct download link."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pandirect.domain.entities.share import (
    ProviderProfile,
    ResolutionResult,
    ShareReference,
)


@runtime_checkable
class ShareResolverPort(Protocol):
    """Runs one provider's multi-step protocol for a share reference.

    Implementations handle provider-specific scraping, token derivation
    and redirect probing.
    """

    @property
    def name(self) -> str:
        """Canonical provider key this resolver handles (e.g. 'lz', 'fj')."""
        ...

    @property
    def profile(self) -> ProviderProfile:
        """Static provider data (URL pattern, aliases, default TTL)."""
        ...

    def validate(self, url: str) -> str | None:
        """Return the share id if *url* belongs to this provider, else None."""
        ...

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        """Resolve the share to a direct download URL.

        Raises a ``ShareResolveError`` subclass on any failure; never
        returns a partially populated result.
        """
        ...
