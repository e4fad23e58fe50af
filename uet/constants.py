"""
Centralized Constants Module for the UET configuration store.

Consolidates the file names, permissions, environment variable names and
cryptographic parameters shared by the store, the key resolver and the CLI.

Usage:
    from uet.constants import Crypto, Paths, Permissions

    os.chmod(path, Permissions.SECURE_FILE)
"""

import logging
import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')

ENV_PREFIX = "UET_"


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Args:
        env_var: Environment variable name (will be prefixed with UET_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None or env_value == "":
        return default

    try:
        converted = converter(env_value)

        if validator is not None and not validator(converted):
            logger.warning(f"{full_env_var}={env_value} failed validation, using default")
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


# =============================================================================
# ENVIRONMENT VARIABLE NAMES
# =============================================================================

@dataclass(frozen=True)
class EnvVars:
    """Names of the environment variables the store and CLI read."""
    MASTER_KEY: str = f"{ENV_PREFIX}MASTER_KEY"
    KEY_FILE: str = f"{ENV_PREFIX}KEY_FILE"
    CONFIG_PATH: str = f"{ENV_PREFIX}CONFIG_PATH"
    VERBOSE: str = f"{ENV_PREFIX}VERBOSE"
    LOG_FILE: str = f"{ENV_PREFIX}LOG_FILE"
    LOG_JSON: str = f"{ENV_PREFIX}LOG_JSON"


# =============================================================================
# FILE PERMISSION CONSTANTS
# =============================================================================

class Permissions(IntEnum):
    """
    File permission modes.

    Both the key file and the configuration document hold secrets.
    """
    SECURE_FILE = 0o600                 # rw------- (key file, config document)


# =============================================================================
# PATH CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Paths:
    """
    Default filesystem locations.

    Relative paths resolve against the working directory of the process.
    Override with UET_CONFIG_PATH and UET_KEY_FILE.
    """
    DOCKER_CONFIG_FILE: str = "/app/config/config.yaml"
    LOCAL_CONFIG_FILE: str = "config.yaml"
    KEY_FILE: str = ".uet_key"


def default_config_path() -> str:
    """Return the configuration path, honouring UET_CONFIG_PATH.

    Inside the container image (``/app`` exists) the document lives under
    ``/app/config``; otherwise it is ``config.yaml`` in the working directory.
    """
    if os.path.isdir("/app"):
        fallback = Paths.DOCKER_CONFIG_FILE
    else:
        fallback = Paths.LOCAL_CONFIG_FILE
    return _env_override("CONFIG_PATH", fallback)


def default_key_file() -> str:
    """Return the key file path, honouring UET_KEY_FILE."""
    return _env_override("KEY_FILE", Paths.KEY_FILE)


# =============================================================================
# CRYPTOGRAPHIC CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Crypto:
    """
    Cryptographic parameters for field envelopes.

    The salt, iteration count and envelope tag match documents written by
    earlier releases; changing any of them makes existing envelopes
    undecryptable.
    """
    ENVELOPE_ALGORITHM: str = "AES256_GCM"
    ENVELOPE_MARKER: str = "ENC["

    KEY_SIZE: int = 32                  # AES-256
    NONCE_SIZE: int = 12                # GCM standard nonce
    RAW_KEY_SIZE: int = 32              # generated key file contents

    PBKDF2_SALT: bytes = b"uet-salt"
    PBKDF2_ITERATIONS: int = 100000


__all__ = [
    'EnvVars',
    'Permissions',
    'Paths',
    'Crypto',
    'default_config_path',
    'default_key_file',
]
