from .share import (
    CacheEntry,
    ProviderProfile,
    ResolutionResult,
    ShareReference,
    SigningContext,
)

__all__ = [
    "CacheEntry",
    "ProviderProfile",
    "ResolutionResult",
    "ShareReference",
    "SigningContext",
]
