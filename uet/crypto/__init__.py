"""
Cryptographic module for the UET configuration store.

Field-level envelope encryption (AES-256-GCM) and derivation of the
envelope key from an operator-supplied or generated master secret.
"""

from .envelope import (
    ENVELOPE_PREFIX,
    Envelope,
    EnvelopeCipher,
    is_envelope,
    parse_envelope,
    format_envelope,
    encrypt_value,
    decrypt_value,
)

from .key_material import (
    KeyMaterialResolver,
    derive_key,
)

__all__ = [
    # Envelope cipher
    'ENVELOPE_PREFIX',
    'Envelope',
    'EnvelopeCipher',
    'is_envelope',
    'parse_envelope',
    'format_envelope',
    'encrypt_value',
    'decrypt_value',

    # Key material
    'KeyMaterialResolver',
    'derive_key',
]
