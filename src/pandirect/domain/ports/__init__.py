from .result_cache import ResultCachePort
from .share_resolver import ShareResolverPort

__all__ = [
    "ResultCachePort",
    "ShareResolverPort",
]
