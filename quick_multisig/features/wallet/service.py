"""Credential service backed by local keypairs."""

from __future__ import annotations

from quick_multisig.crypto.keypairs import Keypair
from quick_multisig.crypto.keys import PublicKey
from quick_multisig.features.signers.models import ResolverContext
from quick_multisig.shared.errors import MultisigError, MultisigErrorCode
from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.protocols import SignedTransaction
from quick_multisig.shared.validation import normalize_sui_address

logger = get_logger(__name__)


class LocalCredentialService:
    """Signs with one active keypair out of a local set.

    Like a browser wallet, only the active account is reported as
    connected; :meth:`switch_to` changes it.
    """

    def __init__(self, keypairs: list[Keypair] | None = None):
        self._keypairs: list[Keypair] = list(keypairs or [])
        self._active = 0

    @property
    def keypairs(self) -> list[Keypair]:
        return list(self._keypairs)

    @property
    def active_keypair(self) -> Keypair | None:
        if not self._keypairs:
            return None
        return self._keypairs[self._active]

    def add_keypair(self, keypair: Keypair, activate: bool = False) -> None:
        self._keypairs.append(keypair)
        if activate:
            self._active = len(self._keypairs) - 1

    def switch_to(self, address: str) -> Keypair:
        target = normalize_sui_address(address)
        for index, keypair in enumerate(self._keypairs):
            if keypair.to_sui_address() == target:
                self._active = index
                logger.info("Switched active account to %s", target)
                return keypair
        raise MultisigError(
            MultisigErrorCode.WALLET_NOT_CONNECTED,
            f"No local keypair for address {address}",
        )

    def _require_active(self) -> Keypair:
        keypair = self.active_keypair
        if keypair is None:
            raise MultisigError(MultisigErrorCode.WALLET_NOT_CONNECTED, "No wallet connected")
        return keypair

    async def sign_transaction(self, tx_bytes: bytes, sender: str) -> SignedTransaction:
        keypair = self._require_active()
        signature = keypair.sign_transaction(tx_bytes)
        logger.debug(
            "Signed %d byte transaction for sender %s with %s",
            len(tx_bytes),
            sender,
            keypair.to_sui_address(),
        )
        return SignedTransaction(tx_bytes=bytes(tx_bytes), signature=signature)

    async def current_public_key(self) -> PublicKey | None:
        keypair = self.active_keypair
        return keypair.public_key if keypair else None

    def resolver_context(self) -> ResolverContext:
        context = ResolverContext()
        keypair = self.active_keypair
        if keypair is not None:
            context.add_wallet(keypair.to_sui_address(), keypair.public_key)
        return context
