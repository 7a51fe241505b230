"""Signer factory.

Creates the appropriate signer based on configuration.
"""

import logging
from typing import Optional

from gcp_kms_signer.config import Settings, get_settings
from gcp_kms_signer.signing.base import ConfigurationError, Signer, SignerType

logger = logging.getLogger(__name__)


def get_signer_type(settings: Settings) -> SignerType:
    """Determine which signer to use.

    Raises:
        ConfigurationError: If SIGNER_BACKEND names an unknown backend
    """
    try:
        return SignerType(settings.signer_backend.lower())
    except ValueError as e:
        raise ConfigurationError(f"Unknown signer backend: {settings.signer_backend}") from e


async def create_signer(settings: Optional[Settings] = None) -> Signer:
    """Build the configured signer.

    For gcp_kms this fetches the key version's public key once.

    Raises:
        ConfigurationError: If the selected backend is not fully configured
    """
    settings = settings or get_settings()
    signer_type = get_signer_type(settings)
    logger.info(f"Initializing {signer_type.value} signer: {settings.get_safe_dict()}")

    if signer_type == SignerType.GCP_KMS:
        if not settings.has_kms_key:
            raise ConfigurationError(
                "GOOGLE_PROJECT_ID, GOOGLE_LOCATION, GOOGLE_KEYRING and GOOGLE_KEY_NAME must be set"
            )

        from gcp_kms_signer.signing.kms import GcpKmsProvider, GcpKmsSigner

        provider = GcpKmsProvider(settings.key_ring_ref(), endpoint=settings.kms_endpoint)
        return await GcpKmsSigner.create(
            provider,
            settings.google_key_name,
            settings.google_key_version,
            settings.chain_id,
        )

    if not settings.local_private_key:
        raise ConfigurationError("LOCAL_PRIVATE_KEY must be set for the local signer")

    from gcp_kms_signer.signing.local import LocalSigner

    return LocalSigner.from_key(settings.local_private_key, settings.chain_id)
