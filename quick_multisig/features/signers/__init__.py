"""Signer definitions and their resolution into key material."""

from quick_multisig.features.signers.models import (
    ConnectedWallet,
    PasskeySigner,
    PublicKeySigner,
    ResolvedSigner,
    ResolverContext,
    SignerDefinition,
    WalletSigner,
    ZkLoginSigner,
    signer_from_dict,
)
from quick_multisig.features.signers.resolver import SignerResolver, generate_signer_id
from quick_multisig.features.signers.validators import (
    calculate_total_weight,
    validate_signer,
)

__all__ = [
    "ConnectedWallet",
    "PasskeySigner",
    "PublicKeySigner",
    "ResolvedSigner",
    "ResolverContext",
    "SignerDefinition",
    "WalletSigner",
    "ZkLoginSigner",
    "signer_from_dict",
    "SignerResolver",
    "generate_signer_id",
    "calculate_total_weight",
    "validate_signer",
]
