"""Security module — encryption, credentials, tokens, audit, recovery store."""

from vozsegura.security.audit import audit_recorder
from vozsegura.security.encryption import field_encryptor, mask_for_display

__all__ = ["audit_recorder", "field_encryptor", "mask_for_display"]
