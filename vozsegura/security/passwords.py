"""Credential hashing and the password strength policy.

Uses bcrypt directly (passlib does not track bcrypt 5.x). The cost factor
comes from settings.security.bcrypt_rounds; 12 rounds is ~250ms on commodity
hardware.
"""

from __future__ import annotations

import functools
import logging
import re
import secrets

import bcrypt

from vozsegura.config import settings
from vozsegura.errors import InvalidInput

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and bcrypt>=5 refuses longer input
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

# Checked in this order; the first failing rule is reported.
_STRENGTH_RULES: tuple[tuple[re.Pattern[str] | None, str], ...] = (
    (None, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"),
    (re.compile(r"[A-Z]"), "Password must include at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must include at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must include at least one digit"),
    (
        re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]"),
        f"Password must include at least one special character ({SPECIAL_CHARACTERS})",
    ),
)


def hash_credential(plaintext: str) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    raw = plaintext.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        msg = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        raise ValueError(msg)
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=settings.security.bcrypt_rounds)).decode("utf-8")


def verify_credential(plaintext: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash (constant-time inside bcrypt).

    Candidates longer than MAX_PASSWORD_BYTES can never match a stored hash,
    but they still pay for a full check on their first 72 bytes so the reply
    takes as long as any other mismatch.
    """
    raw = plaintext.encode("utf-8")
    too_long = len(raw) > MAX_PASSWORD_BYTES
    try:
        matched = bcrypt.checkpw(raw[:MAX_PASSWORD_BYTES], hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("bcrypt rejected the stored hash; treating as mismatch")
        return False
    return matched and not too_long


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_credential(secrets.token_urlsafe(16))


def burn_verification_time(plaintext: str) -> None:
    """Run a full bcrypt check against a throwaway hash.

    Used when the account does not exist so the response time matches a
    wrong-password attempt.
    """
    verify_credential(plaintext, _dummy_hash())


def password_strength_error(password: str) -> str | None:
    """Return the message of the first failing rule, or None if valid."""
    for pattern, message in _STRENGTH_RULES:
        if pattern is None:
            if len(password) < MIN_PASSWORD_LENGTH:
                return message
        elif not pattern.search(password):
            return message
    return None


def validate_password_strength(password: str) -> None:
    """Raise InvalidInput on field `password` naming the missing class."""
    error = password_strength_error(password)
    if error is not None:
        raise InvalidInput.for_field("password", error)
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidInput.for_field("password", f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
