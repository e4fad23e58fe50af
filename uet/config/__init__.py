"""
Configuration module for the UET configuration store.

Document model, sensitive-field policy and the thread-safe store that
persists tenants and applications.
"""

from .models import (
    ApplicationType,
    Tenant,
    Application,
    ConfigDocument,
    migrate_legacy_fields,
    validate_tenant,
    validate_application,
    document_problems,
)

from .sensitive_fields import (
    SENSITIVE_FIELDS,
    is_sensitive_field,
    encrypt_fields,
    decrypt_fields,
    count_fields,
)

from .rwlock import ReadWriteLock

from .store import (
    ConfigStore,
    load_config,
    read_raw_document,
)

__all__ = [
    # Document model
    'ApplicationType',
    'Tenant',
    'Application',
    'ConfigDocument',
    'migrate_legacy_fields',
    'validate_tenant',
    'validate_application',
    'document_problems',

    # Sensitive fields
    'SENSITIVE_FIELDS',
    'is_sensitive_field',
    'encrypt_fields',
    'decrypt_fields',
    'count_fields',

    # Store
    'ReadWriteLock',
    'ConfigStore',
    'load_config',
    'read_raw_document',
]
