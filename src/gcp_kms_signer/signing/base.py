"""Base interfaces for EVM signing.

Signing flow:
1. Compute the digest (personal message, transaction sighash or EIP-712)
2. Submit the digest to the signer backend
3. Backend returns (r, s) and the recovery id (never the private key)
4. Apply EIP-155 chain encoding where the payload calls for it
5. Hand the signature back to the caller for broadcasting
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class SignerType(str, Enum):
    """Type of signing backend."""
    GCP_KMS = "gcp_kms"   # Google Cloud KMS
    LOCAL = "local"       # Private key in memory


@dataclass(frozen=True)
class RawSignature:
    """ECDSA (r, s) pair as returned by a signing backend, before canonicalization."""
    r: int
    s: int


@dataclass(frozen=True)
class FinalSignature:
    """Signature with recovery value.

    Attributes:
        r: R component of signature
        s: S component of signature (always low-s)
        v: Recovery id (0 or 1), or chain_id * 2 + 35 + recovery id once
            EIP-155 encoding has been applied
    """
    r: int
    s: int
    v: int

    def recovery_id(self, chain_id: Optional[int] = None) -> int:
        """Map v back to the raw recovery id (0 or 1)."""
        if self.v in (0, 1):
            return self.v
        if self.v in (27, 28):
            return self.v - 27
        if chain_id is None:
            # EIP-155: v = chain_id * 2 + 35 + recovery_id
            if self.v < 35:
                raise ValueError(f"v={self.v} is not a valid recovery value")
            return (self.v - 35) % 2
        recovery_id = self.v - 35 - chain_id * 2
        if recovery_id not in (0, 1):
            raise ValueError(f"v={self.v} is not valid for chain {chain_id}")
        return recovery_id

    def to_bytes(self) -> bytes:
        """Serialize as r || s || v."""
        v_len = max(1, (self.v.bit_length() + 7) // 8)
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + self.v.to_bytes(v_len, "big")

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class RemoteServiceError(SigningError):
    """Transport or authorization failure from the key management backend."""
    pass


class KeyFormatError(SigningError):
    """Public key material returned by the backend could not be parsed."""
    pass


class SignatureFormatError(SigningError):
    """Signature returned by the backend could not be decoded."""
    pass


class RecoveryFailure(SigningError):
    """No recovery id reproduces the signer's verifying key."""
    pass


class TypedDataEncodingError(SigningError):
    """EIP-712 payload could not be encoded."""
    pass


class TransactionEncodingError(SigningError):
    """Transaction dict could not be serialized for hashing."""
    pass


class ConfigurationError(SigningError):
    """Signer backend is missing required configuration."""
    pass


def parse_chain_id(value: Union[int, str]) -> int:
    """Accept chain ids as ints or (hex) strings.

    Raises:
        TransactionEncodingError: If the value is not a non-negative integer
    """
    try:
        chain_id = int(value, 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as e:
        raise TransactionEncodingError(f"Invalid chain id: {value!r}") from e
    if chain_id < 0:
        raise TransactionEncodingError(f"Invalid chain id: {value!r}")
    return chain_id


def validate_chain_id(chain_id: int) -> int:
    """Reject negative or non-integer chain ids."""
    if not isinstance(chain_id, int) or chain_id < 0:
        raise ValueError(f"Invalid chain id: {chain_id!r}")
    return chain_id


class Signer(ABC):
    """Abstract base class for EVM signers.

    Implementations hold an immutable verifying key and chain id. Rebinding
    the chain id produces a new signer; instances are never mutated, so a
    single signer can be shared between concurrent callers.
    """

    signer_type: SignerType

    def __init__(self, chain_id: int, address: str):
        self._chain_id = validate_chain_id(chain_id)
        self._address = address

    @property
    def address(self) -> str:
        """Checksummed address of the signing key."""
        return self._address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @abstractmethod
    def with_chain_id(self, chain_id: int) -> "Signer":
        """Return a copy of this signer bound to another chain id."""
        pass

    @abstractmethod
    async def _sign_digest(self, digest: bytes) -> FinalSignature:
        """Sign a 32-byte digest.

        Returns:
            FinalSignature with v set to the raw recovery id (0 or 1)
        """
        pass

    async def sign_hash(self, digest: bytes) -> FinalSignature:
        """Sign a raw 32-byte digest without chain encoding."""
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
        return await self._sign_digest(digest)

    async def _sign_with_eip155(self, digest: bytes, chain_id: int) -> FinalSignature:
        from gcp_kms_signer.signing.recovery import apply_eip155

        validate_chain_id(chain_id)
        signature = await self.sign_hash(digest)
        return apply_eip155(signature, chain_id)

    async def sign_message(self, message: Union[bytes, str]) -> FinalSignature:
        """Sign an EIP-191 personal message with the bound chain id."""
        from gcp_kms_signer.signing.recovery import hash_message

        digest = hash_message(message)
        logger.debug(f"{self!r} signing message hash 0x{digest.hex()}")
        return await self._sign_with_eip155(digest, self._chain_id)

    async def sign_transaction(self, tx: dict) -> FinalSignature:
        """Sign a transaction dict.

        The transaction's own chainId wins over the signer's bound chain id.
        The hash is computed over a copy carrying the effective chain id, so
        the caller's dict is left untouched.
        """
        from gcp_kms_signer.signing.recovery import hash_transaction

        declared = tx.get("chainId")
        chain_id = parse_chain_id(declared) if declared is not None else self._chain_id

        tx_with_chain = dict(tx)
        tx_with_chain["chainId"] = chain_id

        sighash = hash_transaction(tx_with_chain)
        logger.debug(f"{self!r} signing transaction hash 0x{sighash.hex()} on chain {chain_id}")
        return await self._sign_with_eip155(sighash, chain_id)

    async def sign_typed_data(
        self,
        full_message: Optional[dict[str, Any]] = None,
        *,
        domain_data: Optional[dict[str, Any]] = None,
        message_types: Optional[dict[str, Any]] = None,
        message_data: Optional[dict[str, Any]] = None,
    ) -> FinalSignature:
        """Encode and sign EIP-712 typed data.

        No EIP-155 encoding is applied: v is returned as 0 or 1.
        """
        from gcp_kms_signer.signing.recovery import hash_typed_data

        digest = hash_typed_data(
            full_message,
            domain_data=domain_data,
            message_types=message_types,
            message_data=message_data,
        )
        logger.debug(f"{self!r} signing typed data hash 0x{digest.hex()}")
        return await self.sign_hash(digest)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.signer_type.value}, address={self._address}, chain_id={self._chain_id})"
