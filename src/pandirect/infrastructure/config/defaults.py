"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_PROVIDER_TTLS: dict[str, int] = {
    "lz": 1800,
    "cow": 3600,
    "pan123": 7200,
}

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "pandirect",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
        "verify_tls": False,
    },
    "retry": {
        "max_attempts": 3,
        "base_delay_ms": 1000,
    },
    "cache": {
        "default_ttl_seconds": 3600,
        "provider_ttls": dict(DEFAULT_PROVIDER_TTLS),
        "max_entries": 10_000,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "server": {
        "host": "127.0.0.1",
        "port": 3000,
        "resolve_timeout_seconds": 60.0,
    },
}
