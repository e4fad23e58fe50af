"""
Tests for field-level encryption in the Configuration Store.

Secrets must be envelopes on disk whenever the document enables
encryption, plaintext in memory, and unreadable under the wrong key.
"""

import logging
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from uet.config.store import ConfigStore, read_raw_document
from uet.crypto.envelope import is_envelope
from uet.crypto.key_material import KeyMaterialResolver
from uet.exceptions import CryptoError, SensitiveFieldError

TEST_MASTER_KEY = "test-master-key-for-unit-tests"


def _resolver(key_file, master_key=TEST_MASTER_KEY) -> KeyMaterialResolver:
    return KeyMaterialResolver(master_key=master_key, key_file=key_file, environ={})


class TestEncryptedPersistence:
    """Tests for what reaches the disk."""

    @pytest.mark.unit
    @pytest.mark.security
    def test_secrets_are_envelopes_on_disk(self, encrypted_store, sample_tenant, saml_app, config_path):
        encrypted_store.add_tenant(sample_tenant)
        encrypted_store.add_application(saml_app)

        raw = read_raw_document(config_path)
        assert raw["encryption_enabled"] is True
        assert is_envelope(raw["tenants"][0]["admin_api_secret"])
        assert is_envelope(raw["applications"][0]["signing_key"])

        text = config_path.read_text()
        assert "admin-secret-value" not in text
        assert "PRIVATE KEY" not in text

    @pytest.mark.unit
    def test_non_sensitive_fields_stay_plaintext(self, encrypted_store, sample_app, config_path):
        encrypted_store.add_application(sample_app)

        record = read_raw_document(config_path)["applications"][0]
        assert is_envelope(record["client_secret"])
        assert record["client_id"] == "DICLIENTID000000001"
        assert record["api_hostname"] == "api-acme.example.com"

    @pytest.mark.unit
    def test_empty_secret_not_encrypted(self, encrypted_store, saml_app, config_path):
        """Empty sensitive values are written as empty strings."""
        encrypted_store.add_application(saml_app)
        record = read_raw_document(config_path)["applications"][0]
        assert record["client_secret"] == ""

    @pytest.mark.unit
    @pytest.mark.security
    def test_bracketed_plaintext_is_encrypted(self, encrypted_store, sample_tenant, config_path, key_file):
        """A secret that merely starts with ENC[ is sealed like any other."""
        sample_tenant.admin_api_secret = "ENC[hunter2]"
        tenant = encrypted_store.add_tenant(sample_tenant)

        on_disk = read_raw_document(config_path)["tenants"][0]["admin_api_secret"]
        assert on_disk != "ENC[hunter2]"
        assert is_envelope(on_disk)
        assert "hunter2" not in config_path.read_text()

        reloaded = ConfigStore(config_path, key_resolver=_resolver(key_file))
        reloaded.load()
        assert reloaded.get_tenant(tenant.id).admin_api_secret == "ENC[hunter2]"

    @pytest.mark.unit
    def test_memory_holds_plaintext(self, encrypted_store, sample_tenant):
        added = encrypted_store.add_tenant(sample_tenant)

        assert added.admin_api_secret == "admin-secret-value"
        assert encrypted_store.get_tenant(added.id).admin_api_secret == "admin-secret-value"

    @pytest.mark.unit
    def test_reload_decrypts(self, encrypted_store, sample_tenant, sample_app, config_path, key_file):
        tenant = encrypted_store.add_tenant(sample_tenant)
        app = encrypted_store.add_application(sample_app)

        reloaded = ConfigStore(config_path, key_resolver=_resolver(key_file))
        reloaded.load()

        assert reloaded.get_tenant(tenant.id).admin_api_secret == "admin-secret-value"
        assert reloaded.get_application(app.id).client_secret == "client-secret-value"

    @pytest.mark.unit
    def test_every_save_uses_fresh_nonces(self, encrypted_store, sample_tenant, config_path):
        encrypted_store.add_tenant(sample_tenant)
        first = read_raw_document(config_path)["tenants"][0]["admin_api_secret"]
        encrypted_store.save()
        second = read_raw_document(config_path)["tenants"][0]["admin_api_secret"]

        assert first != second


class TestEncryptedLoad:
    """Tests for reading encrypted documents."""

    @pytest.mark.unit
    @pytest.mark.security
    def test_wrong_key_fails_load(self, encrypted_store, sample_tenant, config_path, key_file):
        encrypted_store.add_tenant(sample_tenant)

        other = ConfigStore(config_path, key_resolver=_resolver(key_file, "a-different-key"))
        with pytest.raises(SensitiveFieldError) as exc_info:
            other.load()

        assert isinstance(exc_info.value, CryptoError)
        assert exc_info.value.field_name == "admin_api_secret"
        assert exc_info.value.location == "tenants[0]"
        assert other.list_tenants() == []

    @pytest.mark.unit
    def test_mixed_state_document(self, config_path, key_file, cipher):
        """Encrypted and plaintext secrets can coexist in one document."""
        config_path.write_text(
            "encryption_enabled: true\n"
            "tenants:\n"
            "  - id: t1\n"
            f"    admin_api_secret: '{cipher.encrypt('sealed-secret')}'\n"
            "  - id: t2\n"
            "    admin_api_secret: open-secret\n"
        )
        store = ConfigStore(config_path, key_resolver=_resolver(key_file))
        store.load()

        assert store.get_tenant("t1").admin_api_secret == "sealed-secret"
        assert store.get_tenant("t2").admin_api_secret == "open-secret"

    @pytest.mark.unit
    def test_round_trip_document(self, encrypted_store, sample_tenant, saml_app, oidc_app,
                                 config_path, key_file):
        """save then load reproduces an equal document."""
        encrypted_store.add_tenant(sample_tenant)
        encrypted_store.add_application(saml_app)
        encrypted_store.add_application(oidc_app)

        reloaded = ConfigStore(config_path, key_resolver=_resolver(key_file))
        assert reloaded.load() == encrypted_store.snapshot()

    @pytest.mark.unit
    def test_plaintext_secret_in_encrypted_file(self, config_path, key_file):
        """Hand-edited plaintext secrets load as-is and are encrypted on save."""
        config_path.write_text(
            "encryption_enabled: true\n"
            "tenants:\n"
            "  - id: t1\n"
            "    name: Hand Edited\n"
            "    admin_api_key: KEY\n"
            "    admin_api_secret: typed-in-plaintext\n"
            "    api_hostname: api.example.com\n"
        )
        store = ConfigStore(config_path, key_resolver=_resolver(key_file))
        store.load()
        assert store.get_tenant("t1").admin_api_secret == "typed-in-plaintext"

        store.save()
        assert is_envelope(read_raw_document(config_path)["tenants"][0]["admin_api_secret"])

    @pytest.mark.unit
    def test_envelopes_with_encryption_disabled(self, config_path, key_file, caplog):
        """Envelopes in an unencrypted document are left alone with a warning."""
        envelope = "ENC[AES256_GCM,AAAAAAAAAAAAAAAA,AAAAAAAAAAAAAAAAAAAAAA==]"
        config_path.write_text(
            "encryption_enabled: false\n"
            "tenants:\n"
            "  - id: t1\n"
            f"    admin_api_secret: '{envelope}'\n"
        )
        store = ConfigStore(config_path, key_resolver=_resolver(key_file))

        with caplog.at_level(logging.WARNING, logger="uet.config.store"):
            store.load()

        assert store.get_tenant("t1").admin_api_secret == envelope
        assert "encrypted field" in caplog.text
        assert not key_file.exists()

    @pytest.mark.unit
    def test_unencrypted_document_never_resolves_key(self, store, sample_tenant, key_file):
        """Key material is only touched when encryption is enabled."""
        resolver = KeyMaterialResolver(key_file=key_file, environ={})
        plain = ConfigStore(store.path, key_resolver=resolver)
        plain.load()
        plain.add_tenant(sample_tenant)

        assert resolver.source is None
        assert not key_file.exists()


class TestToggleEncryption:
    """Tests for set_encryption_enabled and export."""

    @pytest.mark.unit
    def test_enable_encrypts_existing_secrets(self, store, sample_tenant, sample_app, config_path):
        store.add_tenant(sample_tenant)
        store.add_application(sample_app)
        assert read_raw_document(config_path)["tenants"][0]["admin_api_secret"] == "admin-secret-value"

        store.set_encryption_enabled(True)

        raw = read_raw_document(config_path)
        assert raw["encryption_enabled"] is True
        assert is_envelope(raw["tenants"][0]["admin_api_secret"])
        assert is_envelope(raw["applications"][0]["client_secret"])
        assert store.encryption_enabled is True

    @pytest.mark.unit
    def test_disable_writes_plaintext(self, encrypted_store, sample_tenant, config_path):
        encrypted_store.add_tenant(sample_tenant)
        encrypted_store.set_encryption_enabled(False)

        raw = read_raw_document(config_path)
        assert raw["encryption_enabled"] is False
        assert raw["tenants"][0]["admin_api_secret"] == "admin-secret-value"

    @pytest.mark.unit
    def test_export_plaintext_copy(self, encrypted_store, sample_tenant, config_path, temp_dir):
        encrypted_store.add_tenant(sample_tenant)
        target = temp_dir / "plain.yaml"

        encrypted_store.export(target, encryption_enabled=False)

        copy_raw = read_raw_document(target)
        assert copy_raw["encryption_enabled"] is False
        assert copy_raw["tenants"][0]["admin_api_secret"] == "admin-secret-value"
        # The original stays encrypted
        assert is_envelope(read_raw_document(config_path)["tenants"][0]["admin_api_secret"])
        assert encrypted_store.encryption_enabled is True
