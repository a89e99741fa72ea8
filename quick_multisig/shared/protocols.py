"""Interfaces of the collaborators the multisig core depends on."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from quick_multisig.crypto.keys import PublicKey

if TYPE_CHECKING:
    from quick_multisig.features.signers.models import ResolverContext


@dataclass(frozen=True)
class GroupMember:
    public_key: PublicKey
    weight: int


class GroupPublicKey(Protocol):
    """Opaque weighted group key produced by the primitive library."""

    def to_sui_address(self) -> str: ...

    def members(self) -> list[GroupMember]:
        """Members in canonical order, which may differ from input order."""
        ...

    def combine(self, signatures: list[str]) -> str:
        """Combine partial signatures given in canonical member order."""
        ...

    def verify_transaction(self, tx_bytes: bytes, signature: str) -> bool | None:
        """``None`` (or raising) means the signature could not be checked."""
        ...


class MultisigPrimitives(Protocol):
    def group_public_key(
        self, threshold: int, members: list[GroupMember]
    ) -> GroupPublicKey: ...


@dataclass
class TransactionRequest:
    """A transaction to build, expressed as a fullnode builder call.

    ``method`` is one of the ``unsafe_*`` builder methods; ``params`` are
    its arguments without the leading sender, which the chain client adds.
    """

    method: str
    params: list[Any] = field(default_factory=list)


@dataclass
class ExecuteResult:
    digest: str
    effects: dict[str, Any] | None = None
    events: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SignedTransaction:
    tx_bytes: bytes
    signature: str


class ChainClient(Protocol):
    async def build(self, transaction: TransactionRequest, sender: str) -> bytes: ...

    async def execute(self, tx_bytes: bytes, signature: str) -> ExecuteResult: ...


class CredentialService(Protocol):
    async def sign_transaction(
        self, tx_bytes: bytes, sender: str
    ) -> SignedTransaction: ...

    async def current_public_key(self) -> PublicKey | None: ...

    def resolver_context(self) -> ResolverContext: ...
