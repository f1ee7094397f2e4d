"""Signing tokens for signed-API providers."""

from __future__ import annotations

from .signature_codec import SignatureCodec, SigningKey

__all__ = ["SignatureCodec", "SigningKey"]
