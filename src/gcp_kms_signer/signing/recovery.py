"""Signature post-processing for remote ECDSA backends.

Cloud KMS returns a DER-encoded (r, s) pair with no recovery id. EVM chains
need the recovery id to get the signer's public key back from a signature,
so it is recomputed here:

1. Canonicalize s to the low half of the curve order
2. Trial-recover with recovery id 0, then 1, against the known public key
3. Optionally fold the chain id into v (EIP-155)

Also home to the address derivation and the digest helpers shared by every
signer variant.
"""

import logging
from typing import Any, Optional, Union

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_account._utils.legacy_transactions import serializable_unsigned_transaction_from_dict
from eth_account.messages import _hash_eip191_message, encode_defunct, encode_typed_data
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import to_checksum_address

from gcp_kms_signer.signing.base import (
    FinalSignature,
    RawSignature,
    RecoveryFailure,
    SignatureFormatError,
    TransactionEncodingError,
    TypedDataEncodingError,
)

logger = logging.getLogger(__name__)

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2


def decode_signature(encoded: bytes) -> RawSignature:
    """Decode a backend signature into (r, s).

    Accepts DER (what Cloud KMS returns) or raw 64-byte r || s.

    Raises:
        SignatureFormatError: If the bytes are neither, or r/s are out of range
    """
    try:
        r, s = decode_dss_signature(bytes(encoded))
    except ValueError as e:
        if len(encoded) != 64:
            raise SignatureFormatError(f"Cannot decode signature ({len(encoded)} bytes): {e}") from e
        r = int.from_bytes(encoded[:32], "big")
        s = int.from_bytes(encoded[32:], "big")

    if not 0 < r < SECP256K1_N:
        raise SignatureFormatError("Signature r is outside the curve order")
    if not 0 < s < SECP256K1_N:
        raise SignatureFormatError("Signature s is outside the curve order")

    return RawSignature(r=r, s=s)


def normalize_s(s: int) -> int:
    """Return the low-s form of s. Already-canonical values are unchanged."""
    if s > SECP256K1_HALF_N:
        return SECP256K1_N - s
    return s


def canonicalize(signature: RawSignature) -> RawSignature:
    """Apply low-s normalization to a raw signature."""
    s = normalize_s(signature.s)
    if s == signature.s:
        return signature
    return RawSignature(r=signature.r, s=s)


def check_candidate(
    signature: RawSignature,
    recovery_id: int,
    digest: bytes,
    public_key: keys.PublicKey,
) -> bool:
    """Trial recovery: does (signature, recovery_id) recover to public_key?"""
    candidate = keys.Signature(vrs=(recovery_id, signature.r, signature.s))
    try:
        recovered = candidate.recover_public_key_from_msg_hash(digest)
    except BadSignature:
        return False
    return recovered == public_key


def recover_signature(
    signature: RawSignature,
    digest: bytes,
    public_key: keys.PublicKey,
) -> FinalSignature:
    """Canonicalize a backend signature and attach its recovery id.

    Raises:
        RecoveryFailure: If neither recovery id reproduces public_key
    """
    signature = canonicalize(signature)

    for recovery_id in (0, 1):
        if check_candidate(signature, recovery_id, digest, public_key):
            return FinalSignature(r=signature.r, s=signature.s, v=recovery_id)

    logger.error(f"Signature over 0x{digest.hex()} does not match key {public_key_to_address(public_key)}")
    raise RecoveryFailure("Signature does not recover to the signer's public key")


def apply_eip155(signature: FinalSignature, chain_id: int) -> FinalSignature:
    """Fold chain_id into v: v = chain_id * 2 + 35 + recovery_id."""
    if signature.v not in (0, 1):
        raise ValueError(f"Expected recovery id 0 or 1, got v={signature.v}")
    if chain_id < 0:
        raise ValueError(f"Invalid chain id: {chain_id}")
    return FinalSignature(r=signature.r, s=signature.s, v=chain_id * 2 + 35 + signature.v)


def public_key_to_address_bytes(public_key: keys.PublicKey) -> bytes:
    """Ethereum address: last 20 bytes of keccak256(X || Y)."""
    from Crypto.Hash import keccak

    uncompressed = b"\x04" + public_key.to_bytes()
    k = keccak.new(digest_bits=256)
    k.update(uncompressed[1:])
    return k.digest()[-20:]


def public_key_to_address(public_key: keys.PublicKey) -> str:
    """Checksummed (EIP-55) address for a public key."""
    return to_checksum_address(public_key_to_address_bytes(public_key))


def hash_message(message: Union[bytes, str]) -> bytes:
    """EIP-191 personal message hash ("\\x19Ethereum Signed Message:\\n" + len + message)."""
    if isinstance(message, str):
        signable = encode_defunct(text=message)
    else:
        signable = encode_defunct(primitive=bytes(message))
    return bytes(_hash_eip191_message(signable))


def hash_transaction(tx: dict) -> bytes:
    """Signing hash of a legacy (EIP-155) or typed (EIP-2718) transaction dict.

    Raises:
        TransactionEncodingError: If the dict is not a valid transaction
    """
    try:
        unsigned = serializable_unsigned_transaction_from_dict(tx)
        return bytes(unsigned.hash())
    except Exception as e:
        raise TransactionEncodingError(f"Cannot encode transaction: {e}") from e


def hash_typed_data(
    full_message: Optional[dict[str, Any]] = None,
    *,
    domain_data: Optional[dict[str, Any]] = None,
    message_types: Optional[dict[str, Any]] = None,
    message_data: Optional[dict[str, Any]] = None,
) -> bytes:
    """EIP-712 digest of a typed data payload.

    Either pass the full message (domain, types, primaryType, message) or
    its parts, as eth_account.messages.encode_typed_data accepts them.

    Raises:
        TypedDataEncodingError: If the payload cannot be encoded
    """
    try:
        signable = encode_typed_data(
            domain_data=domain_data,
            message_types=message_types,
            message_data=message_data,
            full_message=full_message,
        )
        return bytes(_hash_eip191_message(signable))
    except Exception as e:
        raise TypedDataEncodingError(f"Cannot encode EIP-712 payload: {e}") from e


def recover_message_address(
    message: Union[bytes, str],
    signature: FinalSignature,
    chain_id: Optional[int] = None,
) -> str:
    """Recover the address that signed a personal message.

    Handles v as a raw recovery id, legacy 27/28 or EIP-155 encoded.
    """
    digest = hash_message(message)
    vrs = (signature.recovery_id(chain_id), signature.r, signature.s)
    try:
        public_key = keys.Signature(vrs=vrs).recover_public_key_from_msg_hash(digest)
    except BadSignature as e:
        raise RecoveryFailure(f"Cannot recover signer: {e}") from e
    return public_key_to_address(public_key)


def verify_message(
    message: Union[bytes, str],
    signature: FinalSignature,
    address: str,
    chain_id: Optional[int] = None,
) -> bool:
    """Check that a personal message signature was made by address."""
    try:
        recovered = recover_message_address(message, signature, chain_id)
    except RecoveryFailure:
        return False
    return recovered.lower() == address.lower()
