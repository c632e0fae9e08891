"""Field-level AES-256-GCM encryption for PII at rest.

Encrypts sensitive account fields before DB storage and decrypts on read.
Uses 12-byte random nonces (96-bit, NIST recommended for GCM).
Stored format: base64(nonce):base64(tag):base64(ciphertext).

Usage:
    from vozsegura.security.encryption import field_encryptor

    encrypted = field_encryptor.encrypt("+593 99 123 4567")
    plaintext = field_encryptor.decrypt(encrypted)
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vozsegura.config import settings

logger = logging.getLogger(__name__)

# Account attributes stored encrypted, each in a `<name>_encrypted` column
ENCRYPTED_FIELDS: frozenset[str] = frozenset({
    "given_name",
    "surname",
    "phone",
})

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_TAG_SIZE = 16
_SEPARATOR = ":"
MASK_CHAR = "*"


class DecryptionError(ValueError):
    """Ciphertext is malformed or failed authentication."""


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


class FieldEncryptor:
    """AES-256-GCM encryptor for individual database fields.

    Thread-safe and stateless (each encrypt call generates a fresh nonce).
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            msg = f"AES-256 requires a 32-byte key, got {len(key)} bytes"
            raise ValueError(msg)
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string field. Returns nonce:tag:ciphertext, each base64."""
        nonce = os.urandom(_NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ct, tag = sealed[:-_TAG_SIZE], sealed[-_TAG_SIZE:]
        return _SEPARATOR.join((_b64(nonce), _b64(tag), _b64(ct)))

    def decrypt(self, token: str) -> str:
        """Decrypt a nonce:tag:ciphertext token.

        Raises:
            DecryptionError: malformed token or authentication tag mismatch.
        """
        parts = token.split(_SEPARATOR)
        if len(parts) != 3:
            msg = "Invalid encrypted token: expected nonce:tag:ciphertext"
            raise DecryptionError(msg)
        try:
            nonce, tag, ct = (base64.b64decode(p, validate=True) for p in parts)
        except (binascii.Error, ValueError) as exc:
            msg = "Invalid encrypted token: bad base64"
            raise DecryptionError(msg) from exc
        if len(nonce) != _NONCE_SIZE or len(tag) != _TAG_SIZE:
            msg = "Invalid encrypted token: wrong nonce or tag length"
            raise DecryptionError(msg)
        try:
            raw = self._aesgcm.decrypt(nonce, ct + tag, None)
        except InvalidTag as exc:
            msg = "Encrypted token failed integrity check"
            raise DecryptionError(msg) from exc
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted value is not valid UTF-8") from exc

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        """Encrypt, passing None (and empty strings) through as None."""
        if not plaintext:
            return None
        return self.encrypt(plaintext)

    def decrypt_optional(self, token: str | None) -> str | None:
        if token is None:
            return None
        return self.decrypt(token)


def mask_for_display(text: str | None) -> str:
    """Keep the first character of each word, mask the rest.

    "Juan Pérez" -> "J*** P****". Display hygiene only, not a security boundary.
    """
    if not text or not text.strip():
        return MASK_CHAR * 3
    return " ".join(word[0] + MASK_CHAR * (len(word) - 1) for word in text.split())


def _load_key() -> bytes:
    """Load the encryption key from settings (base64-encoded)."""
    raw = settings.security.encryption_key
    if not raw:
        if settings.is_production:
            msg = "ENCRYPTION_KEY must be set in production"
            raise RuntimeError(msg)
        logger.warning("ENCRYPTION_KEY not set — using a random ephemeral key (data won't survive restarts)")
        return os.urandom(32)
    try:
        key = base64.b64decode(raw)
    except (binascii.Error, ValueError) as exc:
        msg = "ENCRYPTION_KEY is not valid base64"
        raise RuntimeError(msg) from exc
    if len(key) != 32:
        msg = f"ENCRYPTION_KEY decoded to {len(key)} bytes (expected 32)"
        raise RuntimeError(msg)
    return key


# Module-level singleton
field_encryptor = FieldEncryptor(_load_key())
