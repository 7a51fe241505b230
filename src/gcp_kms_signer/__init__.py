"""gcp-kms-signer - EVM signing with keys held in Google Cloud KMS."""

from gcp_kms_signer.signing import (
    FinalSignature,
    GcpKmsProvider,
    GcpKmsSigner,
    KeyRingRef,
    LocalSigner,
    Signer,
    SigningError,
    create_signer,
)

__version__ = "0.1.0"

__all__ = [
    "FinalSignature",
    "GcpKmsProvider",
    "GcpKmsSigner",
    "KeyRingRef",
    "LocalSigner",
    "Signer",
    "SigningError",
    "create_signer",
]
