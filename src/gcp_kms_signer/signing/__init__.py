"""EVM signing services.

Provides signer implementations sharing one contract (Signer):
- GcpKmsSigner: Google Cloud KMS-backed signing
- LocalSigner: For development/testing (private key in memory)
"""

from gcp_kms_signer.signing.base import (
    ConfigurationError,
    FinalSignature,
    KeyFormatError,
    RawSignature,
    RecoveryFailure,
    RemoteServiceError,
    SignatureFormatError,
    Signer,
    SignerType,
    SigningError,
    TransactionEncodingError,
    TypedDataEncodingError,
)
from gcp_kms_signer.signing.factory import create_signer
from gcp_kms_signer.signing.keyring import KeyRingRef
from gcp_kms_signer.signing.kms import GcpKmsProvider, GcpKmsSigner
from gcp_kms_signer.signing.local import LocalSigner

__all__ = [
    "ConfigurationError",
    "FinalSignature",
    "KeyFormatError",
    "RawSignature",
    "RecoveryFailure",
    "RemoteServiceError",
    "SignatureFormatError",
    "Signer",
    "SignerType",
    "SigningError",
    "TransactionEncodingError",
    "TypedDataEncodingError",
    "KeyRingRef",
    "GcpKmsProvider",
    "GcpKmsSigner",
    "LocalSigner",
    "create_signer",
]
