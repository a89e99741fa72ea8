"""Public key descriptors, signature scheme flags and Sui address derivation.

A :class:`PublicKey` is the raw key bytes tagged with the signature scheme
that owns them. The scheme matters for the address: identical bytes under
``secp256r1`` and ``passkey`` derive different addresses because the flag
byte is part of the hash input.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from enum import Enum, IntEnum

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from quick_multisig.shared.errors import PublicKeyParseError

ED25519_PUBLIC_KEY_SIZE = 32
SECP_PUBLIC_KEY_SIZE = 33
ADDRESS_SEED_SIZE = 32

# zkLogin public identifiers (iss length + iss + 32 byte seed) are always
# longer than any curve key, so longer inputs are tried as zkLogin first.
# Best effort only: a malformed curve key of that size is not rescued.
ZKLOGIN_LENGTH_CUTOVER = 48

GOOGLE_ISSUER_ALIAS = "accounts.google.com"
GOOGLE_ISSUER = "https://accounts.google.com"


class SignatureScheme(IntEnum):
    ED25519 = 0x00
    SECP256K1 = 0x01
    SECP256R1 = 0x02
    MULTISIG = 0x03
    ZKLOGIN = 0x05
    PASSKEY = 0x06


class SignerKeyType(str, Enum):
    ED25519 = "ed25519"
    SECP256K1 = "secp256k1"
    SECP256R1 = "secp256r1"
    PASSKEY = "passkey"
    ZKLOGIN = "zklogin"


KEY_TYPE_FLAGS: dict[SignerKeyType, SignatureScheme] = {
    SignerKeyType.ED25519: SignatureScheme.ED25519,
    SignerKeyType.SECP256K1: SignatureScheme.SECP256K1,
    SignerKeyType.SECP256R1: SignatureScheme.SECP256R1,
    SignerKeyType.ZKLOGIN: SignatureScheme.ZKLOGIN,
    SignerKeyType.PASSKEY: SignatureScheme.PASSKEY,
}

FLAG_KEY_TYPES: dict[int, SignerKeyType] = {
    int(flag): key_type for key_type, flag in KEY_TYPE_FLAGS.items()
}


def key_type_from_flag(flag: int) -> SignerKeyType:
    """Map a scheme flag to a signer type, falling back to ed25519."""
    return FLAG_KEY_TYPES.get(flag, SignerKeyType.ED25519)


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


@dataclass(frozen=True)
class PublicKey:
    key_type: SignerKeyType
    raw: bytes

    @property
    def flag(self) -> int:
        return int(KEY_TYPE_FLAGS[self.key_type])

    def to_base64(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")

    def to_sui_bytes(self) -> bytes:
        return bytes([self.flag]) + self.raw

    def to_sui_address(self) -> str:
        return "0x" + blake2b_256(self.to_sui_bytes()).hex()

    def __repr__(self) -> str:
        return f"PublicKey({self.key_type.value}, {self.to_base64()})"


def normalize_issuer(issuer: str) -> str:
    if issuer == GOOGLE_ISSUER_ALIAS:
        return GOOGLE_ISSUER
    return issuer


def zklogin_public_identifier(address_seed: int | str, issuer: str) -> PublicKey:
    """Build the zkLogin public identifier from an address seed and issuer."""
    seed = int(address_seed)
    if seed < 0 or seed.bit_length() > ADDRESS_SEED_SIZE * 8:
        raise PublicKeyParseError(f"Address seed out of range: {address_seed}")

    issuer_bytes = normalize_issuer(issuer).encode("utf-8")
    if not issuer_bytes or len(issuer_bytes) > 255:
        raise PublicKeyParseError("Issuer must be between 1 and 255 bytes")

    raw = (
        bytes([len(issuer_bytes)])
        + issuer_bytes
        + seed.to_bytes(ADDRESS_SEED_SIZE, "big")
    )
    return PublicKey(SignerKeyType.ZKLOGIN, raw)


def decode_zklogin_identifier(raw: bytes) -> tuple[str, int]:
    """Split a zkLogin identifier into ``(issuer, address_seed)``."""
    if not raw:
        raise ValueError("Empty zkLogin identifier")
    issuer_length = raw[0]
    if len(raw) != 1 + issuer_length + ADDRESS_SEED_SIZE:
        raise ValueError(
            f"Invalid zkLogin identifier length {len(raw)} for issuer length {issuer_length}"
        )
    issuer = raw[1 : 1 + issuer_length].decode("utf-8")
    seed = int.from_bytes(raw[1 + issuer_length :], "big")
    return issuer, seed


def _check_curve_point(curve: ec.EllipticCurve, raw: bytes, label: str) -> None:
    if len(raw) != SECP_PUBLIC_KEY_SIZE:
        raise ValueError(
            f"Invalid {label} public key size: expected {SECP_PUBLIC_KEY_SIZE}, got {len(raw)}"
        )
    ec.EllipticCurvePublicKey.from_encoded_point(curve, raw)


def public_key_from_raw_bytes(key_type: SignerKeyType, raw: bytes) -> PublicKey:
    """Validate ``raw`` for ``key_type`` and wrap it. Raises ``ValueError``."""
    if key_type == SignerKeyType.ZKLOGIN:
        decode_zklogin_identifier(raw)
    elif key_type == SignerKeyType.ED25519:
        if len(raw) != ED25519_PUBLIC_KEY_SIZE:
            raise ValueError(
                f"Invalid ed25519 public key size: expected {ED25519_PUBLIC_KEY_SIZE}, got {len(raw)}"
            )
        Ed25519PublicKey.from_public_bytes(raw)
    elif key_type == SignerKeyType.SECP256K1:
        _check_curve_point(ec.SECP256K1(), raw, "secp256k1")
    elif key_type in (SignerKeyType.SECP256R1, SignerKeyType.PASSKEY):
        _check_curve_point(ec.SECP256R1(), raw, key_type.value)
    else:
        raise ValueError(f"Unknown key type: {key_type}")
    return PublicKey(key_type, bytes(raw))


def public_key_from_sui_bytes(data: bytes) -> PublicKey:
    """Parse ``flag || raw`` bytes."""
    if not data:
        raise ValueError("Empty public key bytes")
    flag = data[0]
    if flag not in FLAG_KEY_TYPES:
        raise ValueError(f"Unsupported signature scheme flag: {flag:#04x}")
    return public_key_from_raw_bytes(FLAG_KEY_TYPES[flag], data[1:])


def parse_public_key(encoded: str, key_type: SignerKeyType | str) -> PublicKey:
    """Parse a base64 public key for the given key type.

    Explicit ``zklogin`` and ``passkey`` tags are honoured first. Any input
    longer than ``ZKLOGIN_LENGTH_CUTOVER`` bytes is tried as a zkLogin
    identifier before the tag is consulted.

    Raises:
        PublicKeyParseError: if the bytes or the key type are invalid.
    """
    try:
        key_type = SignerKeyType(key_type)
        raw = base64.b64decode(encoded, validate=True)

        if key_type in (SignerKeyType.ZKLOGIN, SignerKeyType.PASSKEY):
            return public_key_from_raw_bytes(key_type, raw)

        if len(raw) > ZKLOGIN_LENGTH_CUTOVER:
            try:
                return public_key_from_raw_bytes(SignerKeyType.ZKLOGIN, raw)
            except (ValueError, UnicodeDecodeError):
                pass

        return public_key_from_raw_bytes(key_type, raw)
    except PublicKeyParseError:
        raise
    except (ValueError, TypeError, binascii.Error, UnicodeDecodeError) as e:
        raise PublicKeyParseError(f"Failed to parse public key: {e}", e) from e
