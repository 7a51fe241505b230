"""Cloud KMS resource names.

Key versions are addressed as:
projects/{project}/locations/{location}/keyRings/{keyRing}/cryptoKeys/{keyId}/cryptoKeyVersions/{keyVersion}
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class KeyRingRef:
    """Reference to a Cloud KMS key ring.

    Attributes:
        project_id: Google Cloud project ID
        location: KMS location (e.g. "global", "europe-west1")
        key_ring: Key ring name
    """
    project_id: str
    location: str
    key_ring: str

    def __post_init__(self):
        for field_name in ("project_id", "location", "key_ring"):
            if not getattr(self, field_name):
                raise ValueError(f"KeyRingRef.{field_name} must not be empty")

    def to_google_ref(self) -> str:
        """Get the key ring resource name."""
        return f"projects/{self.project_id}/locations/{self.location}/keyRings/{self.key_ring}"

    def to_key_version_ref(self, key_id: str, key_version: Union[int, str]) -> str:
        """Get the resource name of a specific key version."""
        return key_version_path(self, key_id, key_version)


def key_version_path(key_ring: KeyRingRef, key_id: str, key_version: Union[int, str]) -> str:
    """Format the resource name of a key version inside a key ring."""
    return f"{key_ring.to_google_ref()}/cryptoKeys/{key_id}/cryptoKeyVersions/{key_version}"
