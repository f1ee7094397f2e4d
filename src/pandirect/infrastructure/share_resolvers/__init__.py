"""Share resolver implementations for turning share links into direct URLs."""

from __future__ import annotations

from pandirect.domain.ports.share_resolver import ShareResolverPort
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient
from pandirect.infrastructure.signing.signature_codec import SignatureCodec

from .cowtransfer import CowTransferResolver
from .lanzou import LanzouResolver
from .lecloud import LecloudResolver
from .pan123 import Pan123Resolver
from .registry import ProviderRegistry, password_from_url
from .signed_api import SignedApiResolver, create_all_signed_api_resolvers


def create_all_resolvers(
    fetch: FetchClient,
    retry: RetryPolicy,
    codec: SignatureCodec | None,
) -> list[ShareResolverPort]:
    """All resolvers in URL-sniffing order.

    Signed-API resolvers are omitted when *codec* is ``None``.
    """
    resolvers: list[ShareResolverPort] = [
        LanzouResolver(fetch, retry),
        CowTransferResolver(fetch, retry),
        Pan123Resolver(fetch, retry),
    ]
    if codec is not None:
        resolvers.extend(create_all_signed_api_resolvers(fetch, retry, codec))
    resolvers.append(LecloudResolver(fetch, retry))
    return resolvers


__all__ = [
    "CowTransferResolver",
    "LanzouResolver",
    "LecloudResolver",
    "Pan123Resolver",
    "ProviderRegistry",
    "SignedApiResolver",
    "create_all_resolvers",
    "password_from_url",
]
