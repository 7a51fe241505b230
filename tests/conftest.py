"""Pytest configuration and fixtures."""

from types import SimpleNamespace
from typing import Optional

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from gcp_kms_signer.signing.keyring import KeyRingRef
from gcp_kms_signer.signing.kms import GcpKmsProvider, GcpKmsSigner
from gcp_kms_signer.signing.local import LocalSigner

# eth_account documentation key
PRIVATE_KEY_HEX = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

OTHER_PRIVATE_KEY_HEX = "0x" + "11" * 32


class FakeKmsClient:
    """Stand-in for KeyManagementServiceClient backed by a real secp256k1 key.

    Signatures come back DER encoded with a random nonce, so roughly half of
    them carry a high s, like the real service.
    """

    def __init__(self, private_key_hex: str = PRIVATE_KEY_HEX, signature: Optional[bytes] = None):
        secret = int(private_key_hex, 16)
        self._key = ec.derive_private_key(secret, ec.SECP256K1())
        self._signature = signature
        self.requests: list[dict] = []

    @property
    def pem(self) -> str:
        return self._key.public_key().public_bytes(
            Encoding.PEM, PublicFormat.SubjectPublicKeyInfo
        ).decode()

    def get_public_key(self, request: dict):
        self.requests.append(request)
        return SimpleNamespace(name=request["name"], pem=self.pem)

    def asymmetric_sign(self, request: dict):
        self.requests.append(request)
        if self._signature is not None:
            return SimpleNamespace(name=request["name"], signature=self._signature)

        digest = request["digest"]["sha256"]
        signature = self._key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        return SimpleNamespace(name=request["name"], signature=signature)


@pytest.fixture
def key_ring() -> KeyRingRef:
    return KeyRingRef(project_id="test-project", location="global", key_ring="signers")


@pytest.fixture
def kms_client() -> FakeKmsClient:
    return FakeKmsClient()


@pytest.fixture
def provider(key_ring, kms_client) -> GcpKmsProvider:
    return GcpKmsProvider(key_ring, client=kms_client)


@pytest_asyncio.fixture
async def kms_signer(provider) -> GcpKmsSigner:
    """KMS signer for key 'eth-key' version 1 on mainnet."""
    return await GcpKmsSigner.create(provider, "eth-key", 1, chain_id=1)


@pytest.fixture
def local_signer() -> LocalSigner:
    return LocalSigner(PRIVATE_KEY_HEX, chain_id=1)


@pytest.fixture
def legacy_tx() -> dict:
    return {
        "nonce": 0,
        "gasPrice": 20_000_000_000,
        "gas": 21000,
        "to": "0xF0109fC8DF283027b6285cc889F5aA624EaC1F55",
        "value": 1_000_000_000,
        "data": b"",
    }


@pytest.fixture
def dynamic_fee_tx() -> dict:
    """EIP-1559 (type 2) transaction."""
    return {
        "type": 2,
        "nonce": 0,
        "maxFeePerGas": 2_000_000_000,
        "maxPriorityFeePerGas": 1_000_000_000,
        "gas": 21000,
        "to": "0xF0109fC8DF283027b6285cc889F5aA624EaC1F55",
        "value": 1_000_000_000,
        "data": b"",
        "accessList": [],
        "chainId": 5,
    }


@pytest.fixture
def mail_typed_data() -> dict:
    """EIP-712 reference 'Mail' example."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Person": [
                {"name": "name", "type": "string"},
                {"name": "wallet", "type": "address"},
            ],
            "Mail": [
                {"name": "from", "type": "Person"},
                {"name": "to", "type": "Person"},
                {"name": "contents", "type": "string"},
            ],
        },
        "primaryType": "Mail",
        "domain": {
            "name": "Ether Mail",
            "version": "1",
            "chainId": 1,
            "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
        },
        "message": {
            "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
            "to": {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
            "contents": "Hello, Bob!",
        },
    }
