"""Application configuration using pydantic-settings.

Identifies the Cloud KMS key version a signer is bound to and the default
chain id.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Backend
    # ======================
    signer_backend: str = Field(default="gcp_kms", description="Signer backend: gcp_kms or local")

    # ======================
    # Google Cloud KMS
    # ======================
    google_project_id: str = Field(default="", description="Google Cloud project ID")
    google_location: str = Field(default="", description="KMS location, e.g. global")
    google_keyring: str = Field(default="", description="KMS key ring name")
    google_key_name: str = Field(default="", description="KMS crypto key name")
    google_key_version: int = Field(default=1, description="KMS crypto key version")
    kms_endpoint: Optional[str] = Field(default=None, description="KMS API endpoint override")

    # ======================
    # Chain
    # ======================
    chain_id: int = Field(default=1, description="Default chain id for EIP-155 encoding")

    # ======================
    # Local signer (development only)
    # ======================
    local_private_key: Optional[str] = Field(
        default=None, description="Hex private key for the local signer"
    )

    @property
    def has_kms_key(self) -> bool:
        """Check if a KMS key version is fully configured."""
        return all(
            (self.google_project_id, self.google_location, self.google_keyring, self.google_key_name)
        )

    def key_ring_ref(self):
        """Build the key ring reference from settings."""
        from gcp_kms_signer.signing.keyring import KeyRingRef

        return KeyRingRef(
            project_id=self.google_project_id,
            location=self.google_location,
            key_ring=self.google_keyring,
        )

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "signer_backend": self.signer_backend,
            "chain_id": self.chain_id,
            "kms": {
                "project": self.google_project_id or "(not set)",
                "location": self.google_location or "(not set)",
                "key_ring": self.google_keyring or "(not set)",
                "key": self.google_key_name or "(not set)",
                "version": self.google_key_version,
                "endpoint": self.kms_endpoint or "(default)",
            },
            "local_private_key": "***" if self.local_private_key else "(not set)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
