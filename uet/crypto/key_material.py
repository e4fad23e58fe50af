"""
Key Material Resolver - Derives the envelope key from a master secret.

Resolution order (first match wins):
1. An explicit master key, or the UET_MASTER_KEY environment variable
2. Raw key bytes from the key file (.uet_key by default)
3. 32 freshly generated random bytes, persisted to the key file (0o600)

Whatever the source, the secret is stretched with PBKDF2-HMAC-SHA256 into a
32-byte key. The derived key itself is never written to disk.
"""

import logging
import os
import secrets
import threading
from pathlib import Path
from typing import Mapping, Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..constants import Crypto, EnvVars, Permissions, default_key_file
from ..exceptions import KeyMaterialError

logger = logging.getLogger(__name__)


def derive_key(secret: bytes) -> bytes:
    """Stretch ``secret`` into a cipher key with the fixed application salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=Crypto.KEY_SIZE,
        salt=Crypto.PBKDF2_SALT,
        iterations=Crypto.PBKDF2_ITERATIONS,
    )
    return kdf.derive(secret)


class KeyMaterialResolver:
    """
    Resolves and caches the derived envelope key.

    Args:
        master_key: Explicit master key. When None, UET_MASTER_KEY is consulted.
        key_file: Location of the generated key blob. Defaults to
                  UET_KEY_FILE or ``.uet_key`` in the working directory.
        environ: Environment mapping to read UET_MASTER_KEY from (tests).
    """

    def __init__(
        self,
        master_key: Optional[str] = None,
        key_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._master_key = master_key
        self._key_file = Path(key_file) if key_file else Path(default_key_file())
        self._environ = environ if environ is not None else os.environ
        self._derived: Optional[bytes] = None
        self._source: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def key_file(self) -> Path:
        return self._key_file

    @property
    def source(self) -> Optional[str]:
        """Where the key came from: 'override', 'key_file' or 'generated'."""
        return self._source

    def resolve(self) -> bytes:
        """Return the derived key, resolving it on first use."""
        with self._lock:
            if self._derived is None:
                secret, source = self._resolve_secret()
                self._derived = derive_key(secret)
                self._source = source
                logger.info(f"Envelope key material resolved from {source}")
            return self._derived

    def _resolve_secret(self):
        override = self._master_key
        if not override:
            override = self._environ.get(EnvVars.MASTER_KEY, "")
        if override:
            return override.encode("utf-8"), "override"

        existing = self._read_key_file()
        if existing is not None:
            return existing, "key_file"

        return self._generate_key_file(), "generated"

    def _read_key_file(self) -> Optional[bytes]:
        try:
            data = self._key_file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise KeyMaterialError(f"failed to read key file {self._key_file}: {e}") from e

        if not data:
            raise KeyMaterialError(f"key file {self._key_file} is empty")
        return data

    def _generate_key_file(self) -> bytes:
        raw = secrets.token_bytes(Crypto.RAW_KEY_SIZE)
        try:
            self._key_file.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(
                self._key_file,
                os.O_WRONLY | os.O_CREAT | os.O_EXCL,
                Permissions.SECURE_FILE,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(raw)
                f.flush()
                os.fsync(f.fileno())
            # umask may have narrowed the mode further; make it exact
            os.chmod(self._key_file, Permissions.SECURE_FILE)
        except OSError as e:
            raise KeyMaterialError(f"failed to save key file {self._key_file}: {e}") from e

        logger.warning(
            f"Generated new master key file {self._key_file} - back it up, "
            "encrypted configuration cannot be recovered without it"
        )
        return raw


__all__ = [
    'KeyMaterialResolver',
    'derive_key',
]
