"""
Envelope Cipher - Authenticated encryption of individual string values.

Provides:
- AES-256-GCM sealing of a single string with a fresh random nonce
- A self-describing envelope format: ENC[AES256_GCM,<nonce>,<ciphertext>]
- A total decrypt: values that are not envelopes pass through unchanged

The cipher knows nothing about documents or field names; see
uet.config.sensitive_fields for the policy that decides what to encrypt.
"""

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..constants import Crypto
from ..exceptions import CryptoError, DecryptionError, EnvelopeFormatError

logger = logging.getLogger(__name__)

ENVELOPE_PREFIX = f"{Crypto.ENVELOPE_MARKER}{Crypto.ENVELOPE_ALGORITHM},"
ENVELOPE_SUFFIX = "]"
ENVELOPE_FORMAT = Crypto.ENVELOPE_MARKER + "{algorithm},{nonce},{ciphertext}" + ENVELOPE_SUFFIX


@dataclass(frozen=True)
class Envelope:
    """A parsed envelope. ``ciphertext`` includes the GCM authentication tag."""
    algorithm: str
    nonce: bytes
    ciphertext: bytes


def is_envelope(value) -> bool:
    """
    Return True if ``value`` carries the full envelope prefix and suffix.

    Plaintext that merely starts with ``ENC[`` is not an envelope and is
    still encrypted on save.
    """
    return (
        isinstance(value, str)
        and value.startswith(ENVELOPE_PREFIX)
        and value.endswith(ENVELOPE_SUFFIX)
    )


def _b64decode(part: str, label: str) -> bytes:
    try:
        return base64.b64decode(part, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EnvelopeFormatError(f"invalid base64 in envelope {label}: {e}")


def parse_envelope(value) -> Optional[Envelope]:
    """
    Parse an envelope string.

    Returns:
        The parsed Envelope, or None when ``value`` is not an envelope at all.

    Raises:
        EnvelopeFormatError: ``value`` looks like an envelope but is malformed.
    """
    if not is_envelope(value):
        return None

    body = value[len(ENVELOPE_PREFIX):-len(ENVELOPE_SUFFIX)]
    parts = body.split(",")
    if len(parts) != 2:
        raise EnvelopeFormatError(
            f"invalid envelope: expected nonce and ciphertext, found {len(parts)} field(s)"
        )

    nonce_b64, ciphertext_b64 = parts
    nonce = _b64decode(nonce_b64, "nonce")
    if len(nonce) != Crypto.NONCE_SIZE:
        raise EnvelopeFormatError(
            f"invalid envelope nonce length: {len(nonce)} (expected {Crypto.NONCE_SIZE})"
        )

    ciphertext = _b64decode(ciphertext_b64, "ciphertext")
    if not ciphertext:
        raise EnvelopeFormatError("invalid envelope: empty ciphertext")

    return Envelope(algorithm=Crypto.ENVELOPE_ALGORITHM, nonce=nonce, ciphertext=ciphertext)


def format_envelope(envelope: Envelope) -> str:
    """Render an Envelope in its canonical string form."""
    return ENVELOPE_FORMAT.format(
        algorithm=envelope.algorithm,
        nonce=base64.b64encode(envelope.nonce).decode("ascii"),
        ciphertext=base64.b64encode(envelope.ciphertext).decode("ascii"),
    )


class EnvelopeCipher:
    """
    Seals and opens envelope strings with a fixed derived key.

    The key is the 32-byte output of the key material resolver, never the
    operator's passphrase or the raw key file bytes.
    """

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != Crypto.KEY_SIZE:
            raise CryptoError(
                f"envelope key must be exactly {Crypto.KEY_SIZE} bytes"
            )
        self._aead = AESGCM(bytes(key))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext``; the empty string encrypts to itself."""
        if plaintext == "":
            return ""

        nonce = secrets.token_bytes(Crypto.NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return format_envelope(Envelope(
            algorithm=Crypto.ENVELOPE_ALGORITHM,
            nonce=nonce,
            ciphertext=ciphertext,
        ))

    def decrypt(self, value: str) -> str:
        """
        Decrypt an envelope, or return ``value`` unchanged if it is not one.

        Raises:
            EnvelopeFormatError: malformed envelope
            DecryptionError: authentication failed (wrong key or corrupted data)
        """
        envelope = parse_envelope(value)
        if envelope is None:
            return value

        try:
            plaintext = self._aead.decrypt(envelope.nonce, envelope.ciphertext, None)
        except InvalidTag:
            logger.debug("Envelope authentication failed")
            raise DecryptionError(
                "failed to decrypt envelope - key mismatch or data corruption"
            )

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(f"decrypted envelope is not valid UTF-8: {e}")


def encrypt_value(plaintext: str, key: bytes) -> str:
    """Encrypt a single value with ``key``."""
    return EnvelopeCipher(key).encrypt(plaintext)


def decrypt_value(value: str, key: bytes) -> str:
    """Decrypt a single value with ``key``; non-envelopes pass through."""
    return EnvelopeCipher(key).decrypt(value)


__all__ = [
    'ENVELOPE_PREFIX',
    'Envelope',
    'EnvelopeCipher',
    'is_envelope',
    'parse_envelope',
    'format_envelope',
    'encrypt_value',
    'decrypt_value',
]
