"""Signature collection sessions for multisig transactions."""

from quick_multisig.features.proposal.session import (
    ProposalSession,
    ProposalState,
    SignerSignatureStatus,
)

__all__ = [
    "ProposalSession",
    "ProposalState",
    "SignerSignatureStatus",
]
