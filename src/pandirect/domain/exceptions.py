"""Share resolution error taxonomy.

Every failure a resolver can surface is one of these classes. The HTTP
layer maps ``http_status`` onto the response; the core never looks at it.
"""

from __future__ import annotations


class ShareResolveError(Exception):
    """Base class for all share resolution errors."""

    http_status: int = 500

    def __init__(self, message: str = "", *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider


class NotSupportedProvider(ShareResolveError):
    """Raised when no resolver is registered for a provider key or alias."""

    http_status = 400


class InvalidShareReference(ShareResolveError):
    """Raised when a URL or share id cannot be mapped to a resolvable share."""

    http_status = 400


class PasswordRequired(ShareResolveError):
    """Raised when an encrypted share is resolved without a password."""

    http_status = 401


class PasswordIncorrect(PasswordRequired):
    """Raised when the provider rejects the supplied password."""

    http_status = 403


class ScrapeFailed(ShareResolveError):
    """Raised when a share page no longer has the expected layout."""

    http_status = 502


class SignatureExtractionFailed(ShareResolveError):
    """Raised when no signing token can be found in a page script."""

    http_status = 502


class UpstreamRejected(ShareResolveError):
    """Raised when a provider API explicitly reports failure."""

    http_status = 502


class DownloadUnavailable(ShareResolveError):
    """Raised when the final redirect target is missing."""

    http_status = 502


class TransientNetworkError(ShareResolveError):
    """Timeouts, connection resets and upstream 5xx. Retried by RetryPolicy."""

    http_status = 503


class UpstreamUnavailable(TransientNetworkError):
    """Raised once retries for a transient failure are exhausted."""


class SigningUnavailable(ShareResolveError):
    """Raised when signing keys could not be derived at startup."""

    http_status = 503
