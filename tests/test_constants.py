"""
Tests for the Constants module.

Tests centralized configuration values and environment overrides.
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from uet import constants
from uet.constants import (
    Crypto,
    EnvVars,
    Paths,
    Permissions,
    default_config_path,
    default_key_file,
)


class TestCrypto:
    """Tests for Crypto constants."""

    @pytest.mark.unit
    def test_sizes(self):
        assert Crypto.KEY_SIZE == 32
        assert Crypto.NONCE_SIZE == 12
        assert Crypto.RAW_KEY_SIZE == 32

    @pytest.mark.unit
    def test_kdf_parameters(self):
        """Changing these would orphan existing envelopes."""
        assert Crypto.PBKDF2_SALT == b"uet-salt"
        assert Crypto.PBKDF2_ITERATIONS == 100000
        assert Crypto.ENVELOPE_ALGORITHM == "AES256_GCM"


class TestPermissions:
    """Tests for Permissions constants."""

    @pytest.mark.unit
    def test_secure_file_mode(self):
        assert Permissions.SECURE_FILE == 0o600

    @pytest.mark.unit
    def test_single_secret_file_mode(self):
        """Every file the store writes uses the one secure mode."""
        assert [p.name for p in Permissions] == ["SECURE_FILE"]

    @pytest.mark.unit
    def test_exports(self):
        assert set(constants.__all__) == {
            "EnvVars", "Permissions", "Paths", "Crypto",
            "default_config_path", "default_key_file",
        }
        assert not hasattr(constants, "SECURE_FILE_MODE")
        assert not hasattr(constants, "KDF_ITERATIONS")


class TestEnvVars:
    """Tests for environment variable names."""

    @pytest.mark.unit
    def test_prefixed(self):
        assert EnvVars.MASTER_KEY == "UET_MASTER_KEY"
        assert EnvVars.KEY_FILE == "UET_KEY_FILE"
        assert EnvVars.CONFIG_PATH == "UET_CONFIG_PATH"


class TestDefaultPaths:
    """Tests for default_config_path / default_key_file."""

    @pytest.mark.unit
    def test_config_path_override(self, monkeypatch):
        monkeypatch.setenv("UET_CONFIG_PATH", "/srv/uet/config.yaml")
        assert default_config_path() == "/srv/uet/config.yaml"

    @pytest.mark.unit
    def test_config_path_default(self, monkeypatch):
        monkeypatch.delenv("UET_CONFIG_PATH", raising=False)
        expected = Paths.DOCKER_CONFIG_FILE if os.path.isdir("/app") else Paths.LOCAL_CONFIG_FILE
        assert default_config_path() == expected

    @pytest.mark.unit
    def test_empty_override_ignored(self, monkeypatch):
        monkeypatch.setenv("UET_KEY_FILE", "")
        assert default_key_file() == Paths.KEY_FILE

    @pytest.mark.unit
    def test_key_file_override(self, monkeypatch):
        monkeypatch.setenv("UET_KEY_FILE", "/run/secrets/uet_key")
        assert default_key_file() == "/run/secrets/uet_key"
