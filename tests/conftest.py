import tempfile
from pathlib import Path

import pytest

from quick_multisig.crypto.keypairs import (
    Ed25519Keypair,
    Secp256k1Keypair,
    Secp256r1Keypair,
)
from quick_multisig.features.signers.models import PublicKeySigner
from quick_multisig.shared.storage import MemoryStore
from tests.fakes import FakeChainClient, FakePrimitives


@pytest.fixture
def ed25519_keypair():
    """Fixture providing a random ed25519 keypair"""
    return Ed25519Keypair.generate()


@pytest.fixture
def secp256k1_keypair():
    """Fixture providing a random secp256k1 keypair"""
    return Secp256k1Keypair.generate()


@pytest.fixture
def secp256r1_keypair():
    """Fixture providing a random secp256r1 keypair"""
    return Secp256r1Keypair.generate()


@pytest.fixture
def keypairs():
    """Fixture providing three ed25519 keypairs"""
    return [Ed25519Keypair.generate() for _ in range(3)]


@pytest.fixture
def primitives():
    return FakePrimitives()


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def memory_store():
    return MemoryStore()


def public_key_signer(keypair, weight=1, name=None, address=None):
    return PublicKeySigner(
        public_key=keypair.public_key.to_base64(),
        key_type=keypair.key_type,
        weight=weight,
        name=name,
        address=address,
    )


@pytest.fixture
def make_signer():
    """Fixture providing a factory for inline public key signers"""
    return public_key_signer


@pytest.fixture(autouse=True)
def isolate_multisig_storage(monkeypatch):
    """Run tests with an isolated storage directory."""
    with tempfile.TemporaryDirectory(prefix="quick-multisig-test-") as tmp_dir:
        monkeypatch.setenv("QUICK_MULTISIG_DIR", str(Path(tmp_dir)))
        yield
