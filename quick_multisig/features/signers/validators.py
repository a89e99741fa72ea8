"""Validation of individual signer definitions."""

from __future__ import annotations

from quick_multisig.crypto.keys import SignerKeyType
from quick_multisig.features.signers.models import (
    PasskeySigner,
    PublicKeySigner,
    SignerDefinition,
    WalletSigner,
    ZkLoginSigner,
)
from quick_multisig.shared.validation import AddressValidator, WeightValidator

KEY_TYPE_NAMES = ", ".join(key_type.value for key_type in SignerKeyType)


def _validate_optional_address(prefix: str, address: str | None) -> list[str]:
    if address is None:
        return []
    result = AddressValidator.validate(address)
    if result.is_valid:
        return []
    return [f"{prefix}: {result.error_message}"]


def validate_signer(signer: SignerDefinition, index: int) -> list[str]:
    """Return every problem with ``signer``; an empty list means valid."""
    prefix = f"Signer[{index}]"
    errors: list[str] = []

    weight_result = WeightValidator.validate(signer.weight)
    if not weight_result.is_valid:
        errors.append(f"{prefix}: {weight_result.error_message}")

    if isinstance(signer, PasskeySigner):
        errors.extend(_validate_optional_address(prefix, signer.address))

    elif isinstance(signer, ZkLoginSigner):
        errors.extend(_validate_optional_address(prefix, signer.address))
        if bool(signer.address_seed) != bool(signer.issuer):
            errors.append(f"{prefix}: zkLogin signer needs both addressSeed and issuer")
        elif signer.address_seed and not str(signer.address_seed).isdigit():
            errors.append(f"{prefix}: zkLogin addressSeed must be a decimal integer")

    elif isinstance(signer, WalletSigner):
        if not signer.address or not isinstance(signer.address, str):
            errors.append(f"{prefix}: Wallet signer requires a valid address")
        else:
            errors.extend(_validate_optional_address(prefix, signer.address))

    elif isinstance(signer, PublicKeySigner):
        if not signer.public_key or not isinstance(signer.public_key, str):
            errors.append(
                f"{prefix}: PublicKey signer requires a valid publicKey (base64 string)"
            )
        if not signer.key_type:
            errors.append(f"{prefix}: PublicKey signer requires keyType ({KEY_TYPE_NAMES})")
        elif not isinstance(signer.key_type, SignerKeyType):
            errors.append(
                f"{prefix}: Invalid keyType '{signer.key_type}'. Must be one of {KEY_TYPE_NAMES}"
            )
        errors.extend(_validate_optional_address(prefix, signer.address))

    else:
        errors.append(f"{prefix}: Unknown signer type '{type(signer).__name__}'")

    return errors


def calculate_total_weight(signers: list[SignerDefinition]) -> int:
    total = 0
    for signer in signers:
        if WeightValidator.validate(signer.weight).is_valid:
            total += signer.weight
    return total
