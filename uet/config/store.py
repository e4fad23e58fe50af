"""
Configuration Store - Owns the persisted tenants and applications.

Provides:
- Loading and saving the YAML backing document
- Transparent field-level envelope encryption when the document enables it
- CRUD operations for tenants and applications with validation
- Reader-writer locking so lookups run concurrently and mutations are exclusive

Every mutation is write-through: the candidate document is validated and
written to disk before it replaces the in-memory document, so a failed write
leaves the store exactly as it was. Readers always receive copies.
"""

import copy
import dataclasses
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import yaml

from ..constants import Permissions
from ..crypto.envelope import EnvelopeCipher
from ..crypto.key_material import KeyMaterialResolver
from ..exceptions import (
    ConfigLoadError,
    ConfigParseError,
    ConfigSaveError,
    DuplicateIdentifierError,
    NotFoundError,
    SensitiveFieldError,
    UETError,
)
from ..utils.error_handling import handle_error
from .models import (
    Application,
    ConfigDocument,
    Tenant,
    migrate_legacy_fields,
    validate_application,
    validate_tenant,
)
from .rwlock import ReadWriteLock
from .sensitive_fields import count_fields, decrypt_fields, encrypt_fields

logger = logging.getLogger(__name__)


class ConfigStore:
    """
    Thread-safe owner of one configuration document and its backing file.

    Args:
        path: Location of the YAML document.
        key_resolver: Source of the envelope key. Only consulted when the
                      document has encryption enabled; defaults to a
                      KeyMaterialResolver reading UET_MASTER_KEY / .uet_key.
    """

    def __init__(
        self,
        path: Union[str, Path],
        key_resolver: Optional[KeyMaterialResolver] = None,
    ):
        self._path = Path(path)
        self._key_resolver = key_resolver
        self._cipher: Optional[EnvelopeCipher] = None
        self._document = ConfigDocument()
        self._lock = ReadWriteLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def encryption_enabled(self) -> bool:
        with self._lock.read_locked():
            return self._document.encryption_enabled

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def load(self, path: Optional[Union[str, Path]] = None) -> ConfigDocument:
        """
        Read, parse, migrate and (if enabled) decrypt the backing document.

        Returns:
            A copy of the loaded document.

        Raises:
            ConfigLoadError: the file cannot be read
            ConfigParseError: the file is not a valid document
            CryptoError: encryption is enabled and a field cannot be decrypted
        """
        with self._lock.write_locked():
            if path is not None:
                self._path = Path(path)
            try:
                document = self._read_document()
            except UETError as e:
                handle_error(e, "load_config", path=str(self._path))
                raise
            self._document = document
            return copy.deepcopy(document)

    def save(self) -> None:
        """
        Write the in-memory document to the backing file.

        Sensitive fields are encrypted on the way out when the document has
        encryption enabled; the in-memory document stays plaintext.
        """
        with self._lock.write_locked():
            try:
                self._write_document(self._document)
            except UETError as e:
                handle_error(e, "save_config", path=str(self._path))
                raise

    def export(self, path: Union[str, Path], encryption_enabled: Optional[bool] = None) -> None:
        """
        Write a copy of the document to another file; this store is unchanged.

        Args:
            path: Destination file
            encryption_enabled: Encryption flag for the copy (current flag if None)
        """
        with self._lock.read_locked():
            document = copy.deepcopy(self._document)
        if encryption_enabled is not None:
            document.encryption_enabled = encryption_enabled

        target = ConfigStore(path, key_resolver=self._key_resolver)
        target._cipher = self._cipher
        try:
            target._write_document(document)
        except UETError as e:
            handle_error(e, "export_config", path=str(path))
            raise

    def _read_document(self) -> ConfigDocument:
        raw = read_raw_document(self._path)

        try:
            document = ConfigDocument.from_dict(raw)
        except ConfigParseError as e:
            e.path = str(self._path)
            raise

        migrated = migrate_legacy_fields(document)
        if migrated:
            logger.info(f"Migrated {migrated} application(s) from legacy is_dmp field")

        if document.encryption_enabled:
            cipher = self._get_cipher()
            self._apply_to_records(document, lambda record: decrypt_fields(record, cipher))
        else:
            encrypted = self._count_encrypted(document)
            if encrypted:
                logger.warning(
                    f"{self._path} has encryption disabled but contains "
                    f"{encrypted} encrypted field(s); they are left as-is"
                )

        logger.info(
            f"Loaded configuration from {self._path}: {len(document.tenants)} tenant(s), "
            f"{len(document.applications)} application(s), "
            f"encryption {'enabled' if document.encryption_enabled else 'disabled'}"
        )
        return document

    def _write_document(self, document: ConfigDocument) -> None:
        data = document.to_dict()
        if document.encryption_enabled:
            cipher = self._get_cipher()
            for section in ("tenants", "applications"):
                for i, record in enumerate(data[section]):
                    try:
                        encrypt_fields(record, cipher)
                    except SensitiveFieldError as e:
                        e.location = f"{section}[{i}]"
                        raise

        content = yaml.safe_dump(
            data,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
        self._atomic_write(content)
        logger.debug(f"Saved configuration to {self._path}")

    def _atomic_write(self, content: str) -> None:
        """Write file atomically with owner-only permissions."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
        except OSError as e:
            raise ConfigSaveError(
                f"failed to write config file {self._path}: {e}", path=str(self._path)
            ) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            os.chmod(temp_path, Permissions.SECURE_FILE)
            os.replace(temp_path, self._path)

        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise ConfigSaveError(
                f"failed to write config file {self._path}: {e}", path=str(self._path)
            ) from e

    def _get_cipher(self) -> EnvelopeCipher:
        if self._cipher is None:
            if self._key_resolver is None:
                self._key_resolver = KeyMaterialResolver()
            self._cipher = EnvelopeCipher(self._key_resolver.resolve())
        return self._cipher

    @staticmethod
    def _apply_to_records(document: ConfigDocument, func: Callable) -> None:
        # Dataclass instances expose their fields as a mutable mapping via vars()
        for section, records in (("tenants", document.tenants),
                                 ("applications", document.applications)):
            for i, record in enumerate(records):
                try:
                    func(vars(record))
                except SensitiveFieldError as e:
                    e.location = f"{section}[{i}]"
                    raise

    @staticmethod
    def _count_encrypted(document: ConfigDocument) -> int:
        total = 0
        for record in [*document.tenants, *document.applications]:
            encrypted, _ = count_fields(vars(record))
            total += encrypted
        return total

    def _commit(self, candidate: ConfigDocument, operation: str) -> None:
        """Persist ``candidate`` and make it current. Caller holds the write lock."""
        try:
            self._write_document(candidate)
        except UETError as e:
            handle_error(e, operation, path=str(self._path))
            raise
        self._document = candidate

    # =========================================================================
    # QUERIES
    # =========================================================================

    def snapshot(self) -> ConfigDocument:
        """Return a copy of the whole in-memory document."""
        with self._lock.read_locked():
            return copy.deepcopy(self._document)

    def get_application(self, app_id: str) -> Application:
        """Raises NotFoundError if no application has ``app_id``."""
        with self._lock.read_locked():
            for app in self._document.applications:
                if app.id == app_id:
                    return copy.deepcopy(app)
        raise NotFoundError("application", app_id)

    def list_applications(self) -> List[Application]:
        with self._lock.read_locked():
            return copy.deepcopy(self._document.applications)

    def list_enabled_applications(self) -> List[Application]:
        with self._lock.read_locked():
            return [copy.deepcopy(a) for a in self._document.applications if a.enabled]

    def list_applications_for_tenant(self, tenant_id: str) -> List[Application]:
        with self._lock.read_locked():
            return [
                copy.deepcopy(a) for a in self._document.applications
                if a.tenant_id == tenant_id
            ]

    def is_configured(self) -> bool:
        """True when at least one application is enabled."""
        with self._lock.read_locked():
            return any(a.enabled for a in self._document.applications)

    def get_tenant(self, tenant_id: str) -> Tenant:
        """Raises NotFoundError if no tenant has ``tenant_id``."""
        with self._lock.read_locked():
            for tenant in self._document.tenants:
                if tenant.id == tenant_id:
                    return copy.deepcopy(tenant)
        raise NotFoundError("tenant", tenant_id)

    def get_tenant_by_hostname(self, hostname: str) -> Tenant:
        with self._lock.read_locked():
            for tenant in self._document.tenants:
                if tenant.api_hostname == hostname:
                    return copy.deepcopy(tenant)
        raise NotFoundError("tenant", hostname)

    def list_tenants(self) -> List[Tenant]:
        with self._lock.read_locked():
            return copy.deepcopy(self._document.tenants)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_application(self, app: Application) -> Application:
        """
        Validate and append an application, generating its id if absent.

        Returns:
            A copy of the stored application (with its id).
        """
        app = copy.deepcopy(app)
        with self._lock.write_locked():
            if not app.id:
                app.id = str(uuid.uuid4())
            validate_application(app)

            if any(existing.id == app.id for existing in self._document.applications):
                raise DuplicateIdentifierError("application", app.id)

            candidate = dataclasses.replace(
                self._document,
                applications=[*self._document.applications, app],
            )
            self._commit(candidate, "add_application")
            logger.info(f"Added application {app.id} ({app.name})")
            return copy.deepcopy(app)

    def update_application(self, app_id: str, app: Application) -> Application:
        """Replace the application with ``app_id``; the id is preserved."""
        app = copy.deepcopy(app)
        with self._lock.write_locked():
            app.id = app_id
            validate_application(app)

            applications = list(self._document.applications)
            for i, existing in enumerate(applications):
                if existing.id == app_id:
                    applications[i] = app
                    break
            else:
                raise NotFoundError("application", app_id)

            candidate = dataclasses.replace(self._document, applications=applications)
            self._commit(candidate, "update_application")
            logger.info(f"Updated application {app_id}")
            return copy.deepcopy(app)

    def delete_application(self, app_id: str) -> None:
        with self._lock.write_locked():
            remaining = [a for a in self._document.applications if a.id != app_id]
            if len(remaining) == len(self._document.applications):
                raise NotFoundError("application", app_id)

            candidate = dataclasses.replace(self._document, applications=remaining)
            self._commit(candidate, "delete_application")
            logger.info(f"Deleted application {app_id}")

    def add_tenant(self, tenant: Tenant) -> Tenant:
        """Validate and append a tenant, generating its id if absent."""
        tenant = copy.deepcopy(tenant)
        with self._lock.write_locked():
            if not tenant.id:
                tenant.id = str(uuid.uuid4())
            validate_tenant(tenant)

            if any(existing.id == tenant.id for existing in self._document.tenants):
                raise DuplicateIdentifierError("tenant", tenant.id)

            candidate = dataclasses.replace(
                self._document,
                tenants=[*self._document.tenants, tenant],
            )
            self._commit(candidate, "add_tenant")
            logger.info(f"Added tenant {tenant.id} ({tenant.name})")
            return copy.deepcopy(tenant)

    def delete_tenant(self, tenant_id: str) -> int:
        """
        Delete a tenant and every application that references it.

        The tenant and its applications are removed in a single write; if the
        write fails neither is removed.

        Returns:
            Number of applications deleted with the tenant.
        """
        with self._lock.write_locked():
            tenants = [t for t in self._document.tenants if t.id != tenant_id]
            if len(tenants) == len(self._document.tenants):
                raise NotFoundError("tenant", tenant_id)

            applications = [a for a in self._document.applications if a.tenant_id != tenant_id]
            removed = len(self._document.applications) - len(applications)

            candidate = dataclasses.replace(
                self._document,
                tenants=tenants,
                applications=applications,
            )
            self._commit(candidate, "delete_tenant")
            logger.info(f"Deleted tenant {tenant_id} and {removed} application(s)")
            return removed

    def set_encryption_enabled(self, enabled: bool) -> None:
        """Toggle field encryption and rewrite the document accordingly."""
        with self._lock.write_locked():
            candidate = dataclasses.replace(self._document, encryption_enabled=enabled)
            self._commit(candidate, "set_encryption_enabled")
            logger.info(f"Configuration encryption {'enabled' if enabled else 'disabled'}")


def read_raw_document(path: Union[str, Path]) -> Any:
    """
    Read and parse a YAML document without interpreting it.

    Raises:
        ConfigLoadError: the file cannot be read
        ConfigParseError: the file is not valid UTF-8 or not valid YAML
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(
            f"failed to read config file {path}: {e}", path=str(path)
        ) from e
    except UnicodeDecodeError as e:
        raise ConfigParseError(
            f"config file {path} is not valid UTF-8: {e}", path=str(path)
        ) from e

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        raise ConfigParseError(
            f"failed to parse config file {path}: {e}",
            path=str(path),
            line=line,
            column=column,
        ) from e


def load_config(
    path: Union[str, Path],
    key_resolver: Optional[KeyMaterialResolver] = None,
    create_if_missing: bool = False,
) -> ConfigStore:
    """
    Open a ConfigStore on ``path`` and load it.

    With ``create_if_missing``, an absent file is created holding an empty
    document instead of raising ConfigLoadError.
    """
    store = ConfigStore(path, key_resolver=key_resolver)
    if create_if_missing and not store.path.exists():
        logger.info(f"Config file {store.path} not found, creating an empty one")
        store.save()
        return store
    store.load()
    return store


__all__ = [
    'ConfigStore',
    'load_config',
    'read_raw_document',
]
