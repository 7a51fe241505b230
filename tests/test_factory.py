"""Tests for settings and the signer factory."""

from unittest.mock import patch

import pytest

from gcp_kms_signer.config import Settings
from gcp_kms_signer.signing.base import ConfigurationError, SignerType
from gcp_kms_signer.signing.factory import create_signer, get_signer_type
from gcp_kms_signer.signing.kms import GcpKmsSigner
from gcp_kms_signer.signing.local import LocalSigner

from tests.conftest import ADDRESS, PRIVATE_KEY_HEX, FakeKmsClient


def make_settings(**overrides) -> Settings:
    values = {
        "google_project_id": "test-project",
        "google_location": "global",
        "google_keyring": "signers",
        "google_key_name": "eth-key",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    """Tests for Settings."""

    def test_from_environment(self, monkeypatch):
        """Test KMS identifiers load from environment variables."""
        monkeypatch.setenv("GOOGLE_PROJECT_ID", "env-project")
        monkeypatch.setenv("GOOGLE_LOCATION", "europe-west1")
        monkeypatch.setenv("GOOGLE_KEYRING", "ring")
        monkeypatch.setenv("GOOGLE_KEY_NAME", "key")
        monkeypatch.setenv("CHAIN_ID", "5")

        settings = Settings(_env_file=None)

        assert settings.has_kms_key
        assert settings.chain_id == 5
        assert settings.key_ring_ref().to_google_ref() == (
            "projects/env-project/locations/europe-west1/keyRings/ring"
        )

    def test_has_kms_key_incomplete(self):
        """Test has_kms_key is false while any identifier is missing."""
        assert not make_settings(google_keyring="").has_kms_key

    def test_safe_dict_redacts_private_key(self):
        """Test secrets are redacted."""
        data = make_settings(local_private_key=PRIVATE_KEY_HEX).get_safe_dict()
        assert data["local_private_key"] == "***"
        assert PRIVATE_KEY_HEX not in str(data)


class TestFactory:
    """Tests for create_signer."""

    def test_signer_type(self):
        """Test backend names map to SignerType."""
        assert get_signer_type(make_settings()) == SignerType.GCP_KMS
        assert get_signer_type(make_settings(signer_backend="LOCAL")) == SignerType.LOCAL

    def test_unknown_backend(self):
        """Test unknown backends are rejected."""
        with pytest.raises(ConfigurationError):
            get_signer_type(make_settings(signer_backend="vault"))

    @pytest.mark.asyncio
    async def test_create_kms_signer(self):
        """Test the KMS backend builds a provider and fetches the key."""
        client = FakeKmsClient()
        with patch("gcp_kms_signer.signing.kms.KeyManagementServiceClient", return_value=client):
            signer = await create_signer(make_settings(chain_id=5, google_key_version=2))

        assert isinstance(signer, GcpKmsSigner)
        assert signer.address == ADDRESS
        assert signer.chain_id == 5
        assert client.requests[0]["name"].endswith("/cryptoKeys/eth-key/cryptoKeyVersions/2")

    @pytest.mark.asyncio
    async def test_create_kms_signer_missing_config(self):
        """Test missing KMS identifiers raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            await create_signer(make_settings(google_project_id=""))

    @pytest.mark.asyncio
    async def test_create_local_signer(self):
        """Test the local backend builds a LocalSigner."""
        settings = make_settings(signer_backend="local", local_private_key=PRIVATE_KEY_HEX)

        with pytest.warns(UserWarning):
            signer = await create_signer(settings)

        assert isinstance(signer, LocalSigner)
        assert signer.address == ADDRESS

    @pytest.mark.asyncio
    async def test_create_local_signer_missing_key(self):
        """Test the local backend requires a key."""
        with pytest.raises(ConfigurationError):
            await create_signer(make_settings(signer_backend="local"))
