"""Multisig address derivation."""

from quick_multisig.features.account.service import (
    build_group_key,
    build_member_keys,
    derivable_signers,
    derive_multisig_address,
    member_public_key,
)

__all__ = [
    "build_group_key",
    "build_member_keys",
    "derivable_signers",
    "derive_multisig_address",
    "member_public_key",
]
