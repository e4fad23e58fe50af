"""
UET Configuration Store - Core Components

Persistent, thread-safe configuration for tenants and test applications,
with AES-256-GCM envelope encryption of sensitive fields at rest.
"""

__version__ = "1.0.0"

from .constants import (
    EnvVars,
    Permissions,
    Paths,
    Crypto,
    default_config_path,
    default_key_file,
)

from .exceptions import (
    UETError,
    ConfigLoadError,
    ConfigParseError,
    ConfigSaveError,
    ValidationError,
    DuplicateIdentifierError,
    NotFoundError,
    CryptoError,
    KeyMaterialError,
    EnvelopeFormatError,
    DecryptionError,
    SensitiveFieldError,
)

from .crypto import EnvelopeCipher, KeyMaterialResolver
from .config import (
    ApplicationType,
    Tenant,
    Application,
    ConfigDocument,
    ConfigStore,
    load_config,
)

__all__ = [
    '__version__',
    # Constants
    'EnvVars',
    'Permissions',
    'Paths',
    'Crypto',
    'default_config_path',
    'default_key_file',
    # Exceptions
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
    # Crypto
    'EnvelopeCipher',
    'KeyMaterialResolver',
    # Configuration
    'ApplicationType',
    'Tenant',
    'Application',
    'ConfigDocument',
    'ConfigStore',
    'load_config',
]
