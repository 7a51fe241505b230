"""Google Cloud KMS signing backend.

Uses Cloud KMS asymmetric keys for signing. Keys never leave KMS - only the
digest goes out and only the signature comes back.

Setup:
1. Create a key ring and an asymmetric signing key with algorithm
   EC_SIGN_SECP256K1_SHA256 (HSM protection level)
2. Grant the service account roles/cloudkms.signerVerifier and
   roles/cloudkms.publicKeyViewer on the key
3. Point GOOGLE_APPLICATION_CREDENTIALS at the service account (or run on GCP)

Reference:
- https://cloud.google.com/kms/docs/create-validate-signatures
"""

import asyncio
import logging
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_public_key,
)
from eth_keys import keys
from google.api_core import exceptions as google_exceptions
from google.api_core.client_options import ClientOptions
from google.auth import exceptions as auth_exceptions
from google.cloud.kms_v1 import KeyManagementServiceClient

from gcp_kms_signer.signing.base import (
    FinalSignature,
    KeyFormatError,
    RemoteServiceError,
    Signer,
    SignerType,
)
from gcp_kms_signer.signing.keyring import KeyRingRef
from gcp_kms_signer.signing.recovery import (
    decode_signature,
    public_key_to_address,
    recover_signature,
)

logger = logging.getLogger(__name__)


def _remote_error(operation: str, name: str, e: Exception) -> RemoteServiceError:
    """Map a Google API/auth exception to RemoteServiceError."""
    if isinstance(e, google_exceptions.PermissionDenied):
        message = f"Access denied to KMS key {name}. Check IAM permissions."
    elif isinstance(e, google_exceptions.NotFound):
        message = f"KMS key {name} not found. Check key ring, key ID and version."
    elif isinstance(e, auth_exceptions.GoogleAuthError):
        message = f"Google credentials unavailable: {e}"
    else:
        message = f"KMS {operation} failed for {name}: {e}"
    logger.error(message)
    return RemoteServiceError(message)


def parse_public_key_pem(pem: Union[str, bytes]) -> keys.PublicKey:
    """Parse a PEM (SubjectPublicKeyInfo) secp256k1 key into an eth_keys PublicKey.

    Raises:
        KeyFormatError: If the PEM is malformed or not a secp256k1 key
    """
    if isinstance(pem, str):
        pem = pem.encode()

    try:
        public_key = load_pem_public_key(pem)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"Cannot parse public key PEM: {e}") from e

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise KeyFormatError(f"Expected an EC public key, got {type(public_key).__name__}")
    if not isinstance(public_key.curve, ec.SECP256K1):
        raise KeyFormatError(f"Expected a secp256k1 key, got {public_key.curve.name}")

    # Uncompressed: 04 || x || y
    raw = public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    return keys.PublicKey(raw[1:])


class GcpKmsProvider:
    """Thin wrapper around the two Cloud KMS calls a signer needs.

    Both calls are single attempt and uncached; retries are left to the
    caller. The underlying client is synchronous, so calls run on the
    default executor.
    """

    def __init__(
        self,
        key_ring: KeyRingRef,
        client: Optional[KeyManagementServiceClient] = None,
        *,
        endpoint: Optional[str] = None,
    ):
        """Initialize KMS provider.

        Args:
            key_ring: Key ring holding the signing keys
            client: Pre-built KMS client (created on first use otherwise)
            endpoint: Optional API endpoint override
        """
        self.key_ring = key_ring
        self.endpoint = endpoint
        self._client = client
        logger.debug(f"Initialising Google KMS provider for {key_ring.to_google_ref()}")

    @property
    def client(self) -> KeyManagementServiceClient:
        if self._client is None:
            client_options = ClientOptions(api_endpoint=self.endpoint) if self.endpoint else None
            self._client = KeyManagementServiceClient(client_options=client_options)
        return self._client

    async def get_verifying_key(self, key_id: str, key_version: int) -> keys.PublicKey:
        """Fetch and parse the public key of a key version.

        Raises:
            RemoteServiceError: On transport or authorization failure
            KeyFormatError: If the returned PEM is not a secp256k1 key
        """
        name = self.key_ring.to_key_version_ref(key_id, key_version)
        logger.debug(f"Fetching public key for {name}")

        try:
            client = self.client
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.get_public_key(request={"name": name}),
            )
        except (google_exceptions.GoogleAPICallError, auth_exceptions.GoogleAuthError) as e:
            raise _remote_error("get_public_key", name, e) from e

        return parse_public_key_pem(response.pem)

    async def sign_digest(self, key_id: str, key_version: int, digest: bytes) -> bytes:
        """Ask KMS to sign a SHA-256-sized digest.

        Returns:
            Signature bytes exactly as returned by KMS (DER)

        Raises:
            RemoteServiceError: On transport or authorization failure
        """
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")

        name = self.key_ring.to_key_version_ref(key_id, key_version)
        logger.debug(f"Signing digest 0x{digest.hex()} with {name}")

        try:
            client = self.client
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.asymmetric_sign(
                    request={"name": name, "digest": {"sha256": bytes(digest)}}
                ),
            )
        except (google_exceptions.GoogleAPICallError, auth_exceptions.GoogleAuthError) as e:
            raise _remote_error("asymmetric_sign", name, e) from e

        return bytes(response.signature)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(key_ring={self.key_ring.to_google_ref()})"


class GcpKmsSigner(Signer):
    """EVM signer backed by a Cloud KMS key version.

    The verifying key is fetched once (see create()) and kept for the
    signer's lifetime; every signature is checked against it to recover v.
    """

    signer_type = SignerType.GCP_KMS

    def __init__(
        self,
        provider: GcpKmsProvider,
        key_id: str,
        key_version: int,
        chain_id: int,
        verifying_key: keys.PublicKey,
    ):
        super().__init__(chain_id, public_key_to_address(verifying_key))
        self.provider = provider
        self.key_id = key_id
        self.key_version = key_version
        self.verifying_key = verifying_key

    @classmethod
    async def create(
        cls,
        provider: GcpKmsProvider,
        key_id: str,
        key_version: int = 1,
        chain_id: int = 1,
    ) -> "GcpKmsSigner":
        """Fetch the key version's public key and build a signer for it."""
        verifying_key = await provider.get_verifying_key(key_id, key_version)
        signer = cls(provider, key_id, key_version, chain_id, verifying_key)
        logger.info(f"Created KMS signer {signer.address} for {key_id}/{key_version}")
        return signer

    def with_chain_id(self, chain_id: int) -> "GcpKmsSigner":
        return GcpKmsSigner(
            self.provider,
            self.key_id,
            self.key_version,
            chain_id,
            self.verifying_key,
        )

    async def _sign_digest(self, digest: bytes) -> FinalSignature:
        encoded = await self.provider.sign_digest(self.key_id, self.key_version, digest)
        raw = decode_signature(encoded)
        return recover_signature(raw, digest, self.verifying_key)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(key={self.key_id}/{self.key_version}, "
            f"address={self.address}, chain_id={self.chain_id})"
        )
