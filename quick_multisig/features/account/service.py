"""Multisig address derivation from a resolved signer set."""

from __future__ import annotations

from quick_multisig.crypto.keys import PublicKey, SignerKeyType, zklogin_public_identifier
from quick_multisig.features.signers.models import ResolvedSigner
from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.protocols import GroupMember, GroupPublicKey, MultisigPrimitives

logger = get_logger(__name__)


def member_public_key(signer: ResolvedSigner) -> PublicKey:
    """Key a signer contributes to the group.

    zkLogin signers with a known seed and issuer use the identifier rebuilt
    from them.

    Raises:
        ValueError: if the signer carries no key material.
    """
    if signer.type == SignerKeyType.ZKLOGIN and signer.address_seed and signer.issuer:
        return zklogin_public_identifier(signer.address_seed, signer.issuer)
    if signer.public_key is None:
        raise ValueError(f"Signer {signer.id} has no public key")
    return signer.public_key


def derivable_signers(signers: list[ResolvedSigner]) -> list[ResolvedSigner]:
    return [s for s in signers if s.resolved and s.has_key_material]


def build_member_keys(signers: list[ResolvedSigner]) -> list[GroupMember]:
    return [
        GroupMember(member_public_key(signer), signer.weight)
        for signer in derivable_signers(signers)
    ]


def build_group_key(
    signers: list[ResolvedSigner],
    threshold: int,
    primitives: MultisigPrimitives,
) -> GroupPublicKey:
    """Hand the derivable signers to the primitive library. May raise."""
    return primitives.group_public_key(threshold, build_member_keys(signers))


def derive_multisig_address(
    signers: list[ResolvedSigner],
    threshold: int,
    primitives: MultisigPrimitives,
) -> str | None:
    """Derive the multisig address, or ``None`` when it is not derivable yet.

    Not derivable is an expected state while signers are being added: no
    signer carries key material, or the threshold exceeds their combined
    weight. Failures inside the primitive library are logged, never raised.
    """
    candidates = derivable_signers(signers)
    if not candidates:
        return None

    total_weight = sum(signer.weight for signer in candidates)
    if threshold < 1 or threshold > total_weight:
        return None

    try:
        return build_group_key(candidates, threshold, primitives).to_sui_address()
    except Exception as e:
        logger.error("Failed to derive multisig address: %s", e)
        return None
