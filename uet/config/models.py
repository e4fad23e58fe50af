"""
Configuration Document Model.

Typed representation of the persisted document: an encryption flag, the
tenants (isolated account credential sets) and the test applications
configured against them.

This module is pure: no I/O, no locking and no knowledge of encryption.
It provides (de)serialisation to plain dictionaries, the one-time legacy
migration of the ``is_dmp`` flag, and the invariants every tenant and
application must satisfy before it is inserted or updated.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..exceptions import ConfigParseError, ValidationError


class ApplicationType(Enum):
    """The four kinds of test integration."""
    WEBSDK = "websdk"   # Web SDK v4 redirect prompt
    DMP = "dmp"         # Device Management Portal
    SAML = "saml"
    OIDC = "oidc"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass
class Tenant:
    """An isolated account with Admin API credentials."""
    id: str = ""
    name: str = ""
    admin_api_key: str = ""
    admin_api_secret: str = ""
    api_hostname: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'admin_api_key': self.admin_api_key,
            'admin_api_secret': self.admin_api_secret,
            'api_hostname': self.api_hostname,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], location: str = "tenant") -> 'Tenant':
        return cls(**_string_fields(cls, data, location))


@dataclass
class Application:
    """A single test integration."""
    id: str = ""
    tenant_id: str = ""
    name: str = ""
    type: Optional[Union[ApplicationType, str]] = None
    is_dmp: bool = False  # deprecated, read only for migration
    enabled: bool = False
    client_id: str = ""
    client_secret: str = ""
    api_hostname: str = ""

    # SAML service provider
    entity_id: str = ""
    acs_url: str = ""
    metadata_url: str = ""
    signing_cert: str = ""
    signing_key: str = ""

    # SAML identity provider metadata
    idp_entity_id: str = ""
    idp_sso_url: str = ""
    idp_certificate: str = ""

    # OIDC relying party
    redirect_uri: str = ""
    idp_discovery_url: str = ""
    idp_issuer: str = ""
    idp_authorization_endpoint: str = ""
    idp_token_endpoint: str = ""
    idp_userinfo_endpoint: str = ""
    idp_jwks_endpoint: str = ""

    def __post_init__(self):
        # Accept wire values; unknown strings are left for validation to report
        if isinstance(self.type, str):
            if self.type == "":
                self.type = None
            elif self.type in ApplicationType.values():
                self.type = ApplicationType(self.type)

    @property
    def application_type(self) -> ApplicationType:
        """The effective type, falling back to the legacy flag when unset."""
        if isinstance(self.type, ApplicationType):
            return self.type
        return ApplicationType.DMP if self.is_dmp else ApplicationType.WEBSDK

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'id': self.id}
        if self.tenant_id:
            data['tenant_id'] = self.tenant_id
        data['name'] = self.name
        data['type'] = self.type.value if isinstance(self.type, ApplicationType) else self.type
        if self.is_dmp:
            data['is_dmp'] = True
        data['enabled'] = self.enabled
        data['client_id'] = self.client_id
        data['client_secret'] = self.client_secret
        data['api_hostname'] = self.api_hostname
        for name in _OPTIONAL_APPLICATION_FIELDS:
            value = getattr(self, name)
            if value:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], location: str = "application") -> 'Application':
        values: Dict[str, Any] = _string_fields(cls, data, location)

        raw_type = data.get('type')
        if raw_type is None or raw_type == "":
            values['type'] = None
        elif isinstance(raw_type, str) and raw_type in ApplicationType.values():
            values['type'] = ApplicationType(raw_type)
        else:
            raise ConfigParseError(
                f"{location}: invalid application type {raw_type!r} "
                f"(must be one of: {', '.join(ApplicationType.values())})"
            )

        values['is_dmp'] = _bool_field(data, 'is_dmp', location)
        values['enabled'] = _bool_field(data, 'enabled', location)
        return cls(**values)


_OPTIONAL_APPLICATION_FIELDS = (
    'entity_id', 'acs_url', 'metadata_url', 'signing_cert', 'signing_key',
    'idp_entity_id', 'idp_sso_url', 'idp_certificate',
    'redirect_uri', 'idp_discovery_url', 'idp_issuer',
    'idp_authorization_endpoint', 'idp_token_endpoint',
    'idp_userinfo_endpoint', 'idp_jwks_endpoint',
)


@dataclass
class ConfigDocument:
    """The full persisted document."""
    encryption_enabled: bool = False
    tenants: List[Tenant] = field(default_factory=list)
    applications: List[Application] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'encryption_enabled': self.encryption_enabled,
            'tenants': [t.to_dict() for t in self.tenants],
            'applications': [a.to_dict() for a in self.applications],
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'ConfigDocument':
        """
        Build a document from parsed YAML/JSON data.

        An empty document (None) is valid. Unknown keys are ignored.

        Raises:
            ConfigParseError: the data does not have the document's structure
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigParseError(
                f"configuration root must be a mapping, found {type(data).__name__}"
            )

        tenants = [
            Tenant.from_dict(item, f"tenants[{i}]")
            for i, item in enumerate(_record_list(data, 'tenants'))
        ]
        applications = [
            Application.from_dict(item, f"applications[{i}]")
            for i, item in enumerate(_record_list(data, 'applications'))
        ]
        return cls(
            encryption_enabled=_bool_field(data, 'encryption_enabled', "document"),
            tenants=tenants,
            applications=applications,
        )


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _record_list(data: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigParseError(f"'{key}' must be a list, found {type(value).__name__}")
    for i, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise ConfigParseError(
                f"{key}[{i}] must be a mapping, found {type(item).__name__}"
            )
    return value


def _string_fields(cls, data: Mapping[str, Any], location: str) -> Dict[str, Any]:
    values = {}
    for f in fields(cls):
        if f.type is not str:
            continue
        raw = data.get(f.name)
        if raw is None:
            continue
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise ConfigParseError(
                f"{location}.{f.name} must be a string, found {type(raw).__name__}"
            )
        values[f.name] = str(raw)
    return values


def _bool_field(data: Mapping[str, Any], key: str, location: str) -> bool:
    raw = data.get(key)
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ConfigParseError(f"{location}.{key} must be a boolean, found {raw!r}")
    return raw


# =============================================================================
# MIGRATION
# =============================================================================

def migrate_legacy_fields(document: ConfigDocument) -> int:
    """
    Give every application without an explicit type one derived from the
    deprecated ``is_dmp`` flag. Idempotent.

    Returns:
        Number of applications migrated.
    """
    migrated = 0
    for app in document.applications:
        if app.type is None:
            app.type = ApplicationType.DMP if app.is_dmp else ApplicationType.WEBSDK
            migrated += 1
    return migrated


# =============================================================================
# VALIDATION
# =============================================================================

def validate_tenant(tenant: Tenant) -> None:
    """Raise ValidationError if ``tenant`` is missing a required field."""
    if not tenant.name:
        raise ValidationError("tenant name is required", field="name")
    if not tenant.admin_api_key:
        raise ValidationError("admin_api_key is required", field="admin_api_key")
    if not tenant.admin_api_secret:
        raise ValidationError("admin_api_secret is required", field="admin_api_secret")
    if not tenant.api_hostname:
        raise ValidationError("api_hostname is required", field="api_hostname")


def validate_application(app: Application) -> None:
    """Raise ValidationError if ``app`` violates its type's invariants."""
    if not app.name:
        raise ValidationError("application name is required", field="name")

    if app.type is None:
        raise ValidationError("application type is required", field="type")
    if not isinstance(app.type, ApplicationType):
        raise ValidationError(
            f"invalid application type: {app.type} "
            f"(must be one of: {', '.join(ApplicationType.values())})",
            field="type",
        )

    if app.type is ApplicationType.SAML:
        if not app.entity_id:
            raise ValidationError("entity_id is required for SAML applications", field="entity_id")
        if not app.acs_url:
            raise ValidationError("acs_url is required for SAML applications", field="acs_url")
    elif app.type is ApplicationType.OIDC:
        if not app.client_id:
            raise ValidationError("client_id is required for OIDC applications", field="client_id")
        if not app.client_secret:
            raise ValidationError("client_secret is required for OIDC applications", field="client_secret")
        if not app.redirect_uri:
            raise ValidationError("redirect_uri is required for OIDC applications", field="redirect_uri")
    else:
        if not app.client_id:
            raise ValidationError("client_id is required", field="client_id")
        if not app.client_secret:
            raise ValidationError("client_secret is required", field="client_secret")

    if not app.api_hostname:
        raise ValidationError("api_hostname is required", field="api_hostname")


def document_problems(document: ConfigDocument) -> List[ValidationError]:
    """Collect every invariant violation in ``document`` (used by uetctl validate)."""
    problems: List[ValidationError] = []

    seen = set()
    for i, tenant in enumerate(document.tenants):
        try:
            validate_tenant(tenant)
        except ValidationError as e:
            problems.append(ValidationError(f"tenants[{i}] ({tenant.id}): {e}", field=e.field))
        if tenant.id in seen:
            problems.append(ValidationError(f"tenants[{i}]: duplicate id '{tenant.id}'", field="id"))
        seen.add(tenant.id)

    seen = set()
    for i, app in enumerate(document.applications):
        try:
            validate_application(app)
        except ValidationError as e:
            problems.append(ValidationError(f"applications[{i}] ({app.id}): {e}", field=e.field))
        if app.id in seen:
            problems.append(ValidationError(f"applications[{i}]: duplicate id '{app.id}'", field="id"))
        seen.add(app.id)

    return problems


__all__ = [
    'ApplicationType',
    'Tenant',
    'Application',
    'ConfigDocument',
    'migrate_legacy_fields',
    'validate_tenant',
    'validate_application',
    'document_problems',
]
