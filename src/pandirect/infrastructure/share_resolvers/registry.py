"""Registry that dispatches share resolution to per-provider resolvers."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import structlog

from pandirect.domain.entities.share import ProviderProfile, ResolutionResult, ShareReference
from pandirect.domain.exceptions import NotSupportedProvider
from pandirect.domain.ports.share_resolver import ShareResolverPort
from pandirect.infrastructure.logging.setup import url_for_log

log = structlog.get_logger(__name__)

# Query parameter some share links use to embed the password.
PASSWORD_QUERY_PARAM = "pwd"


def password_from_url(url: str) -> str | None:
    """Return the ``pwd`` query value of *url*, if present and non-empty."""
    values = parse_qs(urlsplit(url).query).get(PASSWORD_QUERY_PARAM)
    if values and values[0].strip():
        return values[0].strip()
    return None


class ProviderRegistry:
    """Ordered set of resolvers with case-insensitive alias lookup.

    URL sniffing tries resolvers in registration order; the first
    resolver whose pattern matches wins.
    """

    def __init__(self, resolvers: list[ShareResolverPort] | None = None) -> None:
        self._ordered: list[ShareResolverPort] = []
        self._aliases: dict[str, ShareResolverPort] = {}
        for resolver in resolvers or []:
            self.register(resolver)

    def register(self, resolver: ShareResolverPort) -> None:
        """Append *resolver* and index its key and aliases.

        Re-registering a key replaces the earlier resolver in place.
        """
        existing = self._aliases.get(resolver.name.lower())
        if existing is not None:
            self._ordered[self._ordered.index(existing)] = resolver
        else:
            self._ordered.append(resolver)
        for alias in {resolver.name, *resolver.profile.aliases}:
            self._aliases[alias.lower()] = resolver
        log.debug(
            "share_resolver_registered",
            provider=resolver.name,
            aliases=sorted(resolver.profile.aliases),
        )

    def get(self, alias: str) -> ShareResolverPort | None:
        return self._aliases.get(alias.strip().lower())

    def is_supported(self, alias: str) -> bool:
        return self.get(alias) is not None

    def canonical(self, alias: str) -> str | None:
        """Provider key registered under *alias*, or ``None`` if unknown."""
        resolver = self.get(alias)
        return resolver.name if resolver is not None else None

    @property
    def supported_providers(self) -> list[ProviderProfile]:
        """Profiles of all registered resolvers, in registration order."""
        return [r.profile for r in self._ordered]

    def identify(self, url: str, password: str | None = None) -> ShareReference | None:
        """Sniff *url* against every registered pattern.

        An explicit *password* wins over one embedded in the URL.
        """
        candidate = url.strip()
        for resolver in self._ordered:
            share_id = resolver.validate(candidate)
            if share_id:
                if password is None:
                    password = password_from_url(candidate)
                log.debug("share_url_identified", provider=resolver.name, share_id=share_id)
                return ShareReference(
                    provider=resolver.name, share_id=share_id, password=password
                )
        log.debug("share_url_unrecognized", url=url_for_log(candidate))
        return None

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        """Dispatch *ref* to its resolver and return the result unchanged.

        Raises:
            NotSupportedProvider: no resolver answers to ``ref.provider``.
        """
        resolver = self.get(ref.provider)
        if resolver is None:
            raise NotSupportedProvider(
                f"unsupported provider: {ref.provider}", provider=ref.provider
            )
        return await resolver.resolve(ref)
