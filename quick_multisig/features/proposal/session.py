"""Signature collection, combination and execution for one transaction.

A :class:`ProposalSession` is bound to the transaction bytes, multisig
address, threshold and resolved signer set that existed when it was
created. Later changes to the live signer set never reach an open session;
callers reset and rebuild the proposal instead.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from quick_multisig.crypto.keys import SignerKeyType
from quick_multisig.crypto.signatures import (
    VerificationOutcome,
    signature_address,
    verify_transaction_signature,
)
from quick_multisig.features.account.service import (
    build_group_key,
    derivable_signers,
    member_public_key,
)
from quick_multisig.features.signers.models import ResolvedSigner, ResolverContext
from quick_multisig.shared.errors import (
    REBUILD_HINT,
    ExecutionFailedError,
    InsufficientSignaturesError,
    MultisigError,
    MultisigErrorCode,
    SignerMismatchError,
)
from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.protocols import (
    ChainClient,
    CredentialService,
    ExecuteResult,
    GroupPublicKey,
    MultisigPrimitives,
    TransactionRequest,
)
from quick_multisig.shared.validation import normalize_sui_address

logger = get_logger(__name__)


class ProposalState(Enum):
    COLLECTING = "collecting"
    READY = "ready"
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass
class SignerSignatureStatus:
    signer_id: str
    signed: bool
    signature: str | None = None
    error: str | None = None


def _addresses_differ(a: str | None, b: str | None) -> bool:
    """True only when both addresses are known and they differ."""
    if not a or not b:
        return False
    return normalize_sui_address(a) != normalize_sui_address(b)


class ProposalSession:
    def __init__(
        self,
        tx_bytes: bytes,
        multisig_address: str,
        threshold: int,
        signers: list[ResolvedSigner],
        primitives: MultisigPrimitives,
        chain_client: ChainClient | None = None,
        credentials: CredentialService | None = None,
        transaction: TransactionRequest | None = None,
        proposal_id: str | None = None,
    ):
        self.tx_bytes = bytes(tx_bytes)
        self.multisig_address = multisig_address
        self.threshold = threshold
        self.signers: tuple[ResolvedSigner, ...] = tuple(signers)
        self.transaction = transaction
        self.proposal_id = proposal_id or f"proposal-{uuid.uuid4().hex[:12]}"
        self._primitives = primitives
        self._chain_client = chain_client
        self._credentials = credentials
        self._signatures: dict[str, str] = {}
        self._result: ExecuteResult | None = None
        self._last_error: MultisigError | None = None
        self._logger = logger.with_context(proposal_id=self.proposal_id)

    @property
    def signatures(self) -> dict[str, str]:
        return dict(self._signatures)

    @property
    def signed_weight(self) -> int:
        return sum(
            signer.weight for signer in self.signers if signer.id in self._signatures
        )

    @property
    def can_execute(self) -> bool:
        return self._result is None and self.signed_weight >= self.threshold

    @property
    def state(self) -> ProposalState:
        if self._result is not None:
            return ProposalState.EXECUTED
        if self._last_error is not None:
            return ProposalState.FAILED
        if self.signed_weight >= self.threshold:
            return ProposalState.READY
        return ProposalState.COLLECTING

    @property
    def result(self) -> ExecuteResult | None:
        return self._result

    @property
    def last_error(self) -> MultisigError | None:
        return self._last_error

    def _find_signer(self, signer_id: str) -> ResolvedSigner | None:
        for signer in self.signers:
            if signer.id == signer_id:
                return signer
        return None

    def _ensure_open(self) -> None:
        if self._result is not None:
            raise MultisigError(
                MultisigErrorCode.PROPOSAL_NOT_READY,
                f"Proposal already executed (digest {self._result.digest})",
            )

    def get_signer_status(self, signer_id: str) -> SignerSignatureStatus:
        signer = self._find_signer(signer_id)
        signature = self._signatures.get(signer_id)
        return SignerSignatureStatus(
            signer_id=signer_id,
            signed=signature is not None,
            signature=signature,
            error=signer.error if signer else None,
        )

    def get_signer_statuses(self) -> list[SignerSignatureStatus]:
        return [self.get_signer_status(signer.id) for signer in self.signers]

    def sign_with_signer(self, signer_id: str, signature: str) -> None:
        """Record ``signature`` for ``signer_id``, replacing any earlier one.

        The signature is not verified here; it is checked against its
        member when the proposal is executed.
        """
        self._ensure_open()
        signer = self._find_signer(signer_id)
        if signer is None:
            raise SignerMismatchError(f"Signer '{signer_id}' not found")

        replaced = signer_id in self._signatures
        self._signatures[signer_id] = signature
        self._last_error = None
        self._logger.info(
            "%s signature for %s (signed weight %d/%d)",
            "Replaced" if replaced else "Collected",
            signer_id,
            self.signed_weight,
            self.threshold,
        )

    def _match_signer(self, context: ResolverContext) -> ResolvedSigner | None:
        connected = context.connected_addresses()

        for signer in self.signers:
            if signer.address and normalize_sui_address(signer.address) in connected:
                return signer

        for signer in self.signers:
            if signer.type == SignerKeyType.PASSKEY and context.passkey_public_key:
                return signer
            if signer.type == SignerKeyType.ZKLOGIN and context.zklogin_address:
                return signer

        for signer in self.signers:
            if signer.type in (SignerKeyType.PASSKEY, SignerKeyType.ZKLOGIN):
                continue
            if signer.public_key is not None and (
                signer.public_key.to_sui_address() in connected
            ):
                return signer

        return None

    async def sign_with_current_wallet(self) -> str:
        """Sign with the connected credential and record it for its signer.

        Returns:
            The id of the signer the signature was recorded for.

        Raises:
            SignerMismatchError: if the wallet signed different bytes, no
                signer matches the connected identity, or the signature
                belongs to a different key.
        """
        self._ensure_open()
        if self._credentials is None:
            raise MultisigError(
                MultisigErrorCode.WALLET_NOT_CONNECTED,
                "No credential service available to sign the proposal",
            )

        signed = await self._credentials.sign_transaction(
            self.tx_bytes, self.multisig_address
        )
        if bytes(signed.tx_bytes) != self.tx_bytes:
            raise SignerMismatchError(
                f"Wallet produced different tx bytes. {REBUILD_HINT}",
                rebuild_required=True,
            )

        signer = self._match_signer(self._credentials.resolver_context())
        if signer is None:
            raise SignerMismatchError(
                "Current wallet does not match any signer in the multisig"
            )

        expected = (
            signer.public_key.to_sui_address() if signer.public_key else signer.address
        )
        actual = signature_address(signed.signature)
        if _addresses_differ(expected, actual):
            raise SignerMismatchError(
                f"Signature pubkey mismatch. Expected {expected} but got {actual}. {REBUILD_HINT}",
                rebuild_required=True,
            )

        if signer.type == SignerKeyType.PASSKEY and signer.public_key is not None:
            outcome = verify_transaction_signature(
                self.tx_bytes, signed.signature, signer.public_key
            )
            if outcome is VerificationOutcome.REJECTED:
                raise SignerMismatchError(
                    f"Passkey signature failed local verification. {REBUILD_HINT}",
                    rebuild_required=True,
                )

        self.sign_with_signer(signer.id, signed.signature)
        return signer.id

    async def execute(self) -> ExecuteResult:
        """Combine the collected signatures and submit the transaction.

        Raises:
            InsufficientSignaturesError: if the collected weight is below the
                threshold, before or after canonical ordering.
            SignerMismatchError: if the signer set no longer derives the
                proposal address or a signature belongs to another key.
            ExecutionFailedError: if the combined signature is rejected
                locally or submission fails.
        """
        self._ensure_open()
        try:
            result = await self._execute()
        except MultisigError as e:
            self._last_error = e
            self._logger.warning("Proposal execution failed: %s", e.message)
            raise
        self._result = result
        self._last_error = None
        self._logger.info("Proposal executed with digest %s", result.digest)
        return result

    def _rebuild_group_key(self) -> GroupPublicKey:
        try:
            group_key = build_group_key(
                list(self.signers), self.threshold, self._primitives
            )
            derived = group_key.to_sui_address()
        except Exception as e:
            raise SignerMismatchError(
                f"Could not rebuild the multisig public key: {e}. {REBUILD_HINT}",
                cause=e,
                rebuild_required=True,
            ) from e

        if _addresses_differ(derived, self.multisig_address) or not derived:
            raise SignerMismatchError(
                f"Multisig address mismatch. Proposal sender is {self.multisig_address} "
                f"but current signer set derives {derived}. {REBUILD_HINT}",
                rebuild_required=True,
            )
        return group_key

    def _ordered_signatures(self, group_key: GroupPublicKey) -> list[str]:
        signer_id_by_address: dict[str, str] = {}
        for signer in derivable_signers(list(self.signers)):
            address = member_public_key(signer).to_sui_address()
            signer_id_by_address[address] = signer.id

        members = group_key.members()

        included_weight = 0
        for member in members:
            signer_id = signer_id_by_address.get(member.public_key.to_sui_address())
            if signer_id is not None and signer_id in self._signatures:
                included_weight += member.weight
        if included_weight < self.threshold:
            raise InsufficientSignaturesError(
                "Not enough signatures for the multisig public key map. "
                f"Collected weight ({included_weight}) < threshold ({self.threshold}). "
                f"{REBUILD_HINT}"
            )

        ordered: list[str] = []
        for member in members:
            expected = member.public_key.to_sui_address()
            signer_id = signer_id_by_address.get(expected)
            signature = self._signatures.get(signer_id) if signer_id else None
            if signature is None:
                continue

            actual = signature_address(signature)
            if _addresses_differ(expected, actual):
                raise SignerMismatchError(
                    "Collected signature does not match signer public key. "
                    f"Expected {expected} but got {actual}. {REBUILD_HINT}",
                    rebuild_required=True,
                )
            ordered.append(signature)

        if not ordered:
            raise InsufficientSignaturesError("No signatures collected")
        return ordered

    async def _execute(self) -> ExecuteResult:
        signed_weight = self.signed_weight
        if signed_weight < self.threshold:
            raise InsufficientSignaturesError(
                f"Cannot execute: signed weight ({signed_weight}) < threshold ({self.threshold})"
            )

        group_key = self._rebuild_group_key()
        ordered = self._ordered_signatures(group_key)

        try:
            combined = group_key.combine(ordered)
        except Exception as e:
            raise ExecutionFailedError(
                f"Failed to combine partial signatures: {e}. {REBUILD_HINT}",
                cause=e,
                rebuild_required=True,
            ) from e

        try:
            verified = group_key.verify_transaction(self.tx_bytes, combined)
        except Exception as e:
            self._logger.debug("Combined signature could not be verified locally: %s", e)
            verified = None

        if VerificationOutcome.from_result(verified) is VerificationOutcome.REJECTED:
            raise ExecutionFailedError(
                f"Combined multisig signature failed local verification. {REBUILD_HINT}",
                rebuild_required=True,
            )

        if self._chain_client is None:
            raise ExecutionFailedError("Transaction execution failed: no chain client configured")

        try:
            return await self._chain_client.execute(self.tx_bytes, combined)
        except Exception as e:
            raise ExecutionFailedError(
                f"Transaction execution failed: {e}", cause=e
            ) from e
