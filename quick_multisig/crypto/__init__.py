"""Key, signature and keypair helpers for Sui signature schemes."""

from quick_multisig.crypto.keypairs import (
    Ed25519Keypair,
    Keypair,
    Secp256k1Keypair,
    Secp256r1Keypair,
)
from quick_multisig.crypto.keys import (
    ZKLOGIN_LENGTH_CUTOVER,
    PublicKey,
    SignatureScheme,
    SignerKeyType,
    key_type_from_flag,
    parse_public_key,
    zklogin_public_identifier,
)
from quick_multisig.crypto.signatures import (
    ParsedSignature,
    SignatureFormatError,
    VerificationOutcome,
    parse_serialized_signature,
    signature_address,
    transaction_digest,
    verify_transaction_signature,
)

__all__ = [
    "Keypair",
    "Ed25519Keypair",
    "Secp256k1Keypair",
    "Secp256r1Keypair",
    "ZKLOGIN_LENGTH_CUTOVER",
    "PublicKey",
    "SignatureScheme",
    "SignerKeyType",
    "key_type_from_flag",
    "parse_public_key",
    "zklogin_public_identifier",
    "ParsedSignature",
    "SignatureFormatError",
    "VerificationOutcome",
    "parse_serialized_signature",
    "signature_address",
    "transaction_digest",
    "verify_transaction_signature",
]
