"""Local keypairs that produce Sui serialized transaction signatures."""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from quick_multisig.crypto.keys import PublicKey, SignerKeyType
from quick_multisig.crypto.signatures import (
    SECP256K1_ORDER,
    SECP256R1_ORDER,
    transaction_digest,
)


class Keypair:
    """Base class for local signing keys."""

    key_type: SignerKeyType

    @property
    def public_key(self) -> PublicKey:
        raise NotImplementedError

    def sign(self, message: bytes) -> bytes:
        """Return the 64 byte raw signature over ``message``."""
        raise NotImplementedError

    def to_sui_address(self) -> str:
        return self.public_key.to_sui_address()

    def sign_transaction(self, tx_bytes: bytes) -> str:
        """Sign the transaction intent digest and serialize the signature."""
        signature = self.sign(transaction_digest(tx_bytes))
        serialized = (
            bytes([self.public_key.flag]) + signature + self.public_key.raw
        )
        return base64.b64encode(serialized).decode("ascii")


class Ed25519Keypair(Keypair):
    key_type = SignerKeyType.ED25519

    def __init__(self, private_key: Ed25519PrivateKey | None = None):
        self._private_key = private_key or Ed25519PrivateKey.generate()
        raw = self._private_key.public_key().public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )
        self._public_key = PublicKey(self.key_type, raw)

    @classmethod
    def generate(cls) -> "Ed25519Keypair":
        return cls()

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519Keypair":
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)


class _EcdsaKeypair(Keypair):
    curve: ec.EllipticCurve
    order: int

    def __init__(self, private_key: ec.EllipticCurvePrivateKey | None = None):
        self._private_key = private_key or ec.generate_private_key(self.curve)
        raw = self._private_key.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
        )
        self._public_key = PublicKey(self.key_type, raw)

    @classmethod
    def generate(cls):
        return cls()

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        der = self._private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        # Sui only accepts the low-s form.
        if s > self.order // 2:
            s = self.order - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")


class Secp256k1Keypair(_EcdsaKeypair):
    key_type = SignerKeyType.SECP256K1
    curve = ec.SECP256K1()
    order = SECP256K1_ORDER


class Secp256r1Keypair(_EcdsaKeypair):
    key_type = SignerKeyType.SECP256R1
    curve = ec.SECP256R1()
    order = SECP256R1_ORDER
