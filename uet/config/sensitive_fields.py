"""
Sensitive-Field Policy - Selective encryption of secret fields in a record.

Only the fields named in SENSITIVE_FIELDS are ever touched. Encryption
skips values that are empty or already envelopes, so running it twice is
a no-op the second time. Decryption only opens values that are envelopes.
"""

import logging
from typing import Any, List, MutableMapping

from ..crypto.envelope import EnvelopeCipher, is_envelope
from ..exceptions import SensitiveFieldError, UETError

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = (
    "client_secret",
    "admin_api_secret",
    "signing_key",
)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field is subject to envelope encryption."""
    return field_name in SENSITIVE_FIELDS


def encrypt_fields(record: MutableMapping[str, Any], cipher: EnvelopeCipher) -> List[str]:
    """
    Encrypt every sensitive field of ``record`` in place.

    Returns:
        Names of the fields that were encrypted by this call.

    Raises:
        SensitiveFieldError: a field could not be encrypted. Fields handled
            earlier in the same call keep their new values.
    """
    changed = []
    for field_name in SENSITIVE_FIELDS:
        value = record.get(field_name)
        if not isinstance(value, str) or value == "" or is_envelope(value):
            continue
        try:
            record[field_name] = cipher.encrypt(value)
        except (UETError, ValueError) as e:
            raise SensitiveFieldError(field_name, "encrypt", e) from e
        changed.append(field_name)
    return changed


def decrypt_fields(record: MutableMapping[str, Any], cipher: EnvelopeCipher) -> List[str]:
    """
    Decrypt every sensitive field of ``record`` that holds an envelope.

    Returns:
        Names of the fields that were decrypted by this call.

    Raises:
        SensitiveFieldError: a field failed to decrypt (wrong key, corrupted
            or malformed envelope). Fields handled earlier stay decrypted.
    """
    changed = []
    for field_name in SENSITIVE_FIELDS:
        value = record.get(field_name)
        if not is_envelope(value):
            continue
        try:
            record[field_name] = cipher.decrypt(value)
        except UETError as e:
            raise SensitiveFieldError(field_name, "decrypt", e) from e
        changed.append(field_name)
    return changed


def count_fields(record: MutableMapping[str, Any]):
    """Return (encrypted, plaintext) counts of non-empty sensitive fields."""
    encrypted = plaintext = 0
    for field_name in SENSITIVE_FIELDS:
        value = record.get(field_name)
        if not isinstance(value, str) or value == "":
            continue
        if is_envelope(value):
            encrypted += 1
        else:
            plaintext += 1
    return encrypted, plaintext


__all__ = [
    'SENSITIVE_FIELDS',
    'is_sensitive_field',
    'encrypt_fields',
    'decrypt_fields',
    'count_fields',
]
