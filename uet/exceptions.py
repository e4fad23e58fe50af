"""
UET Configuration Store Exceptions

Every failure the store reports derives from UETError. I/O, parse,
validation, not-found and crypto failures are distinct classes so that
callers can choose to degrade, log or abort per kind.
"""

from typing import Optional


class UETError(Exception):
    """Base exception for all configuration store errors."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


# =============================================================================
# I/O AND PARSE ERRORS
# =============================================================================

class ConfigLoadError(UETError):
    """Raised when the backing document cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigParseError(ConfigLoadError):
    """Raised when the backing document is not a valid configuration document."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message, path=path)
        self.line = line
        self.column = column


class ConfigSaveError(UETError):
    """Raised when the backing document cannot be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


# =============================================================================
# VALIDATION AND LOOKUP ERRORS
# =============================================================================

class ValidationError(UETError, ValueError):
    """Raised when a tenant or application violates a structural invariant."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DuplicateIdentifierError(ValidationError):
    """Raised when an insert would reuse an existing identifier."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} with id '{identifier}' already exists", field="id")
        self.kind = kind
        self.identifier = identifier


class NotFoundError(UETError, LookupError):
    """Raised when an operation targets an identifier absent from the document."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} with id '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


# =============================================================================
# CRYPTO ERRORS
# =============================================================================

class CryptoError(UETError):
    """Base class for envelope and key material failures."""
    pass


class KeyMaterialError(CryptoError):
    """Raised when key material cannot be read, generated or persisted."""
    pass


class EnvelopeFormatError(CryptoError):
    """Raised when an envelope-shaped value cannot be parsed."""
    pass


class DecryptionError(CryptoError):
    """Raised when an envelope fails authentication (wrong key or corrupted data)."""
    pass


class SensitiveFieldError(CryptoError):
    """Raised when a single sensitive field cannot be encrypted or decrypted."""

    def __init__(self, field_name: str, operation: str, cause: Exception):
        super().__init__(f"failed to {operation} {field_name}: {cause}")
        self.field_name = field_name
        self.operation = operation
        # Set by the store to the record that held the field, e.g. "tenants[0]"
        self.location: Optional[str] = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.location:
            return f"{self.location}: {message}"
        return message


__all__ = [
    'UETError',
    'ConfigLoadError',
    'ConfigParseError',
    'ConfigSaveError',
    'ValidationError',
    'DuplicateIdentifierError',
    'NotFoundError',
    'CryptoError',
    'KeyMaterialError',
    'EnvelopeFormatError',
    'DecryptionError',
    'SensitiveFieldError',
]
