"""Serialized signature parsing and best-effort local verification.

Serialized signatures are base64 of ``flag || payload``:

- ed25519:           flag || signature(64) || public key(32)
- secp256k1/r1:      flag || signature(64) || public key(33)
- passkey:           flag || BCS(authenticator data, client data JSON,
                     flag || signature(64) || public key(33))
- zkLogin, multisig: recognised but not verifiable locally

Verification is three-valued. ``REJECTED`` is a definite negative result;
``INDETERMINATE`` means the signature could not be checked here and must
not fail the caller on its own.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from enum import Enum

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from quick_multisig.crypto.keys import (
    PublicKey,
    SignatureScheme,
    SignerKeyType,
    blake2b_256,
    public_key_from_raw_bytes,
)

SIGNATURE_SIZE = 64
TRANSACTION_INTENT = bytes([0, 0, 0])

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256R1_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551


class SignatureFormatError(ValueError):
    pass


class VerificationOutcome(Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"
    INDETERMINATE = "indeterminate"

    @classmethod
    def from_result(cls, result: bool | None) -> "VerificationOutcome":
        if result is None:
            return cls.INDETERMINATE
        return cls.VERIFIED if result else cls.REJECTED


@dataclass(frozen=True)
class ParsedSignature:
    scheme: SignatureScheme
    signature: bytes
    public_key: PublicKey | None = None
    authenticator_data: bytes = b""
    client_data_json: str = ""


def transaction_digest(tx_bytes: bytes) -> bytes:
    """Blake2b-256 of the transaction intent message."""
    return blake2b_256(TRANSACTION_INTENT + tx_bytes)


def _read_uleb128(data: bytes, offset: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise SignatureFormatError("Truncated ULEB128 length")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7
        if shift > 35:
            raise SignatureFormatError("ULEB128 length overflow")


def _read_bytes(data: bytes, offset: int) -> tuple[bytes, int]:
    length, offset = _read_uleb128(data, offset)
    end = offset + length
    if end > len(data):
        raise SignatureFormatError("Truncated BCS byte vector")
    return data[offset:end], end


def _split_simple(payload: bytes, key_type: SignerKeyType) -> tuple[bytes, PublicKey]:
    signature = payload[:SIGNATURE_SIZE]
    if len(signature) != SIGNATURE_SIZE:
        raise SignatureFormatError("Signature payload too short")
    try:
        public_key = public_key_from_raw_bytes(key_type, payload[SIGNATURE_SIZE:])
    except ValueError as e:
        raise SignatureFormatError(str(e)) from e
    return signature, public_key


def parse_serialized_signature(serialized: str) -> ParsedSignature:
    """Decode a base64 serialized signature.

    Raises:
        SignatureFormatError: if the signature cannot be decoded.
    """
    try:
        data = base64.b64decode(serialized, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise SignatureFormatError(f"Signature is not valid base64: {e}") from e

    if not data:
        raise SignatureFormatError("Empty signature")

    try:
        scheme = SignatureScheme(data[0])
    except ValueError as e:
        raise SignatureFormatError(f"Unknown signature scheme flag: {data[0]:#04x}") from e

    payload = data[1:]

    if scheme == SignatureScheme.ED25519:
        signature, public_key = _split_simple(payload, SignerKeyType.ED25519)
        return ParsedSignature(scheme, signature, public_key)

    if scheme == SignatureScheme.SECP256K1:
        signature, public_key = _split_simple(payload, SignerKeyType.SECP256K1)
        return ParsedSignature(scheme, signature, public_key)

    if scheme == SignatureScheme.SECP256R1:
        signature, public_key = _split_simple(payload, SignerKeyType.SECP256R1)
        return ParsedSignature(scheme, signature, public_key)

    if scheme == SignatureScheme.PASSKEY:
        authenticator_data, offset = _read_bytes(payload, 0)
        client_data, offset = _read_bytes(payload, offset)
        user_signature, offset = _read_bytes(payload, offset)
        if not user_signature or user_signature[0] != SignatureScheme.SECP256R1:
            raise SignatureFormatError("Passkey user signature must be secp256r1")
        signature, inner_key = _split_simple(user_signature[1:], SignerKeyType.PASSKEY)
        try:
            client_data_json = client_data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureFormatError("Passkey client data is not UTF-8") from e
        return ParsedSignature(
            scheme,
            signature,
            inner_key,
            authenticator_data=authenticator_data,
            client_data_json=client_data_json,
        )

    # zkLogin and multisig carry no directly usable public key.
    return ParsedSignature(scheme, payload)


def signature_address(serialized: str) -> str | None:
    """Address of the key embedded in the signature, ``None`` when unknown."""
    try:
        parsed = parse_serialized_signature(serialized)
    except SignatureFormatError:
        return None
    if parsed.public_key is None:
        return None
    return parsed.public_key.to_sui_address()


def _der_from_compact(signature: bytes) -> bytes:
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    return encode_dss_signature(r, s)


def _verify_ecdsa(
    curve: ec.EllipticCurve, raw_key: bytes, signature: bytes, message: bytes
) -> bool:
    key = ec.EllipticCurvePublicKey.from_encoded_point(curve, raw_key)
    try:
        key.verify(_der_from_compact(signature), message, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True


def _base64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _verify_passkey(
    parsed: ParsedSignature, public_key: PublicKey, digest: bytes
) -> VerificationOutcome:
    try:
        client_data = json.loads(parsed.client_data_json)
        challenge = _base64url_decode(client_data["challenge"])
    except (ValueError, KeyError, TypeError, binascii.Error):
        return VerificationOutcome.INDETERMINATE

    if client_data.get("type") != "webauthn.get" or challenge != digest:
        return VerificationOutcome.REJECTED

    message = parsed.authenticator_data + hashlib.sha256(
        parsed.client_data_json.encode("utf-8")
    ).digest()
    ok = _verify_ecdsa(ec.SECP256R1(), public_key.raw, parsed.signature, message)
    return VerificationOutcome.from_result(ok)


def verify_transaction_signature(
    tx_bytes: bytes,
    serialized: str,
    expected_public_key: PublicKey | None = None,
) -> VerificationOutcome:
    """Verify a single-signer transaction signature locally.

    When ``expected_public_key`` is given, a signature carrying a different
    key is ``REJECTED`` before any cryptographic check.
    """
    try:
        parsed = parse_serialized_signature(serialized)
    except SignatureFormatError:
        return VerificationOutcome.INDETERMINATE

    if parsed.public_key is None:
        return VerificationOutcome.INDETERMINATE

    if expected_public_key is not None and (
        parsed.public_key.to_sui_address() != expected_public_key.to_sui_address()
    ):
        return VerificationOutcome.REJECTED

    digest = transaction_digest(tx_bytes)

    if parsed.scheme == SignatureScheme.ED25519:
        key = Ed25519PublicKey.from_public_bytes(parsed.public_key.raw)
        try:
            key.verify(parsed.signature, digest)
        except InvalidSignature:
            return VerificationOutcome.REJECTED
        return VerificationOutcome.VERIFIED

    if parsed.scheme == SignatureScheme.SECP256K1:
        ok = _verify_ecdsa(
            ec.SECP256K1(), parsed.public_key.raw, parsed.signature, digest
        )
        return VerificationOutcome.from_result(ok)

    if parsed.scheme == SignatureScheme.SECP256R1:
        ok = _verify_ecdsa(
            ec.SECP256R1(), parsed.public_key.raw, parsed.signature, digest
        )
        return VerificationOutcome.from_result(ok)

    if parsed.scheme == SignatureScheme.PASSKEY:
        return _verify_passkey(parsed, parsed.public_key, digest)

    return VerificationOutcome.INDETERMINATE
