"""Deterministic AES signing tokens for signed-API providers.

The feijipan and ilanzou APIs authenticate every call with tokens of the
form ``HEX(AES-128-ECB(text, key))`` where *text* is a millisecond
timestamp or ``"<fileId>|<userId>"``. There is no nonce exchange, so the
same input must always produce the same token.

The two signing keys are not shipped in clear. They are derived once at
startup by decrypting bundled ciphertexts with a fixed bootstrap key.

Key normalisation (applies to bootstrap and derived keys): right-pad
with ``"L"`` to 16 characters, then truncate to 16.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import structlog
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pandirect.domain.exceptions import SigningUnavailable

log = structlog.get_logger(__name__)

_KEY_LENGTH = 16
_BLOCK_BITS = 128

BOOTSTRAP_KEY = "AES/ECB/PKCS5Padding"


class SigningKey(str, Enum):
    """Which derived key to sign with."""

    PRIMARY = "primary"  # feijipan
    IZ = "iz"  # ilanzou


BUNDLED_CIPHERTEXTS: Mapping[SigningKey, str] = MappingProxyType(
    {
        SigningKey.PRIMARY: "YbQHZqK/PdQql2+7ATcPQHREAxt0Hn0Ob9v317QirZM=",
        SigningKey.IZ: "1uQFS3sNeHd/bCrmrQpflXREAxt0Hn0Ob9v317QirZM=",
    }
)


def normalize_key(key: str) -> bytes:
    """Pad/truncate a text key to exactly 16 bytes."""
    raw = key.ljust(_KEY_LENGTH, "L")[:_KEY_LENGTH].encode("utf-8")
    if len(raw) != _KEY_LENGTH:
        raise ValueError("signing key must be ASCII")
    return raw


def _ecb(key: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.ECB())  # noqa: S305


def aes_ecb_encrypt(plaintext: bytes, key: bytes) -> bytes:
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = _ecb(key).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def aes_ecb_decrypt(ciphertext: bytes, key: bytes) -> bytes:
    decryptor = _ecb(key).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


class SignatureCodec:
    """Holds the derived signing keys and produces hex tokens.

    Instances are immutable. Build one with :meth:`initialize` at startup
    and pass it to every signed-API resolver.
    """

    __slots__ = ("_keys",)

    def __init__(self, keys: Mapping[SigningKey, bytes]) -> None:
        self._keys: Mapping[SigningKey, bytes] = MappingProxyType(dict(keys))

    @classmethod
    def initialize(
        cls,
        *,
        bootstrap_key: str = BOOTSTRAP_KEY,
        ciphertexts: Mapping[SigningKey, str] = BUNDLED_CIPHERTEXTS,
    ) -> SignatureCodec:
        """Derive all signing keys from the bundled ciphertexts.

        Raises:
            SigningUnavailable: if any ciphertext fails to decode or decrypt.
        """
        boot = normalize_key(bootstrap_key)
        keys: dict[SigningKey, bytes] = {}
        for which, encoded in ciphertexts.items():
            try:
                plain = aes_ecb_decrypt(base64.b64decode(encoded, validate=True), boot)
                keys[which] = normalize_key(plain.decode("utf-8"))
            except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
                log.error("signing_key_derivation_failed", key=which.value)
                raise SigningUnavailable(
                    f"cannot derive signing key {which.value!r}: {exc}"
                ) from exc
        log.info("signing_keys_initialized", keys=sorted(k.value for k in keys))
        return cls(keys)

    @classmethod
    def from_keys(cls, keys: Mapping[SigningKey, str]) -> SignatureCodec:
        """Build a codec from already-known text keys."""
        return cls({which: normalize_key(k) for which, k in keys.items()})

    @property
    def available_keys(self) -> frozenset[SigningKey]:
        return frozenset(self._keys)

    def sign(self, text: str, key: SigningKey = SigningKey.PRIMARY) -> str:
        """Encrypt *text* under the selected key and return uppercase hex."""
        try:
            raw_key = self._keys[key]
        except KeyError:
            raise SigningUnavailable(f"signing key {key.value!r} not loaded") from None
        return aes_ecb_encrypt(text.encode("utf-8"), raw_key).hex().upper()
