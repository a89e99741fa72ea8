"""Local keypair credential service."""

from quick_multisig.features.wallet.service import LocalCredentialService

__all__ = ["LocalCredentialService"]
