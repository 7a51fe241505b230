"""Local signing backend.

Uses an in-memory private key. Suitable for:
- Development/testing
- Drop-in replacement for GcpKmsSigner where no KMS is available

WARNING: The private key is stored in memory. Use GcpKmsSigner for
production keys.
"""

import logging
import warnings
from typing import Union

from eth_keys import keys

from gcp_kms_signer.signing.base import FinalSignature, Signer, SignerType
from gcp_kms_signer.signing.recovery import public_key_to_address

logger = logging.getLogger(__name__)


class LocalSigner(Signer):
    """Local signing backend using an in-memory secp256k1 private key.

    Signatures are deterministic (RFC 6979) and already low-s, so no trial
    recovery is needed.
    """

    signer_type = SignerType.LOCAL

    def __init__(self, private_key: Union[bytes, str, keys.PrivateKey], chain_id: int = 1):
        if isinstance(private_key, keys.PrivateKey):
            self._key = private_key
        else:
            if isinstance(private_key, str):
                private_key = bytes.fromhex(private_key.replace("0x", ""))
            self._key = keys.PrivateKey(private_key)

        super().__init__(chain_id, public_key_to_address(self._key.public_key))

    @classmethod
    def from_key(cls, private_key: Union[bytes, str], chain_id: int = 1) -> "LocalSigner":
        """Build a signer, warning that the key lives in memory."""
        warnings.warn(
            "LocalSigner keeps the private key in memory. Do not use with real funds!",
            UserWarning,
            stacklevel=2,
        )
        return cls(private_key, chain_id)

    @property
    def verifying_key(self) -> keys.PublicKey:
        return self._key.public_key

    def with_chain_id(self, chain_id: int) -> "LocalSigner":
        return LocalSigner(self._key, chain_id)

    async def _sign_digest(self, digest: bytes) -> FinalSignature:
        signature = self._key.sign_msg_hash(digest)
        return FinalSignature(r=signature.r, s=signature.s, v=signature.v)
