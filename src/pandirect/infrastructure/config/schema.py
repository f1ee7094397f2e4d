"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .defaults import DEFAULT_PROVIDER_TTLS

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/retry/cache/logging/server).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="pandirect", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Outbound HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Per-request timeout for upstream calls.",
    )
    http_verify_tls: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "http_verify_tls",
            AliasPath("http", "verify_tls"),
        ),
        description="Verify upstream TLS certificates.",
    )

    # Retry (YAML section: retry.*)
    retry_max_attempts: int = Field(
        default=3,
        validation_alias=AliasChoices(
            "retry_max_attempts",
            AliasPath("retry", "max_attempts"),
        ),
        description="Attempts per upstream call, including the first.",
    )
    retry_base_delay_ms: int = Field(
        default=1000,
        validation_alias=AliasChoices(
            "retry_base_delay_ms",
            AliasPath("retry", "base_delay_ms"),
        ),
        description="Linear backoff step; attempt N waits N * base.",
    )

    # Result cache (YAML section: cache.*)
    cache_default_ttl_seconds: int = Field(
        default=3600,
        validation_alias=AliasChoices(
            "cache_default_ttl_seconds",
            AliasPath("cache", "default_ttl_seconds"),
        ),
        description="TTL for providers without an explicit entry. 0 = no caching.",
    )
    cache_provider_ttls: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_TTLS),
        validation_alias=AliasChoices(
            "cache_provider_ttls",
            AliasPath("cache", "provider_ttls"),
        ),
        description="Per-provider TTL overrides keyed by provider key.",
    )
    cache_max_entries: int = Field(
        default=10_000,
        validation_alias=AliasChoices(
            "cache_max_entries",
            AliasPath("cache", "max_entries"),
        ),
        description="Upper bound on cached results; oldest are evicted first.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # HTTP server (YAML section: server.*)
    server_host: str = Field(
        default="127.0.0.1",
        validation_alias=AliasChoices("server_host", AliasPath("server", "host")),
    )
    server_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("server_port", AliasPath("server", "port")),
    )
    resolve_timeout_seconds: float = Field(
        default=60.0,
        validation_alias=AliasChoices(
            "resolve_timeout_seconds",
            AliasPath("server", "resolve_timeout_seconds"),
        ),
        description="Deadline for one API-triggered resolution (504 on expiry).",
    )

    @field_validator("http_timeout_seconds", "resolve_timeout_seconds")
    @classmethod
    def _validate_positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def _validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        return v

    @field_validator("cache_default_ttl_seconds")
    @classmethod
    def _validate_cache_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_default_ttl_seconds must be >= 0")
        return v

    @field_validator("cache_provider_ttls")
    @classmethod
    def _normalize_provider_ttls(cls, v: dict[str, int]) -> dict[str, int]:
        for key, ttl in v.items():
            if ttl < 0:
                raise ValueError(f"provider ttl for {key!r} must be >= 0")
        return {k.lower(): ttl for k, ttl in v.items()}

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def ttl_for(self, provider: str) -> int:
        return self.cache_provider_ttls.get(provider.lower(), self.cache_default_ttl_seconds)

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "verify_tls": self.http_verify_tls,
            },
            "retry": {
                "max_attempts": self.retry_max_attempts,
                "base_delay_ms": self.retry_base_delay_ms,
            },
            "cache": {
                "default_ttl_seconds": self.cache_default_ttl_seconds,
                "provider_ttls": dict(self.cache_provider_ttls),
                "max_entries": self.cache_max_entries,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "server": {
                "host": self.server_host,
                "port": self.server_port,
                "resolve_timeout_seconds": self.resolve_timeout_seconds,
            },
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read PANDIRECT_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - PANDIRECT_HTTP_TIMEOUT_SECONDS
    - PANDIRECT_RETRY_MAX_ATTEMPTS
    - PANDIRECT_CACHE_PROVIDER_TTLS='{"lz": 600}'
    - PANDIRECT_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="PANDIRECT_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_verify_tls: Optional[bool] = None

    retry_max_attempts: Optional[int] = None
    retry_base_delay_ms: Optional[int] = None

    cache_default_ttl_seconds: Optional[int] = None
    cache_provider_ttls: Optional[dict[str, int]] = None
    cache_max_entries: Optional[int] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    server_host: Optional[str] = None
    server_port: Optional[int] = None
    resolve_timeout_seconds: Optional[float] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
