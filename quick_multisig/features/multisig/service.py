"""Multisig coordinator: owner of the signer set, threshold and address.

Every mutation re-resolves the signer definitions and re-derives the
multisig address before returning, then notifies subscribers with a fresh
:class:`MultisigState` snapshot. Proposals are created here and receive a
snapshot of the resolved signers; they never see later mutations.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable

from quick_multisig.crypto.keys import SignerKeyType, parse_public_key
from quick_multisig.features.account.service import derive_multisig_address
from quick_multisig.features.multisig.config import (
    MultisigConfig,
    MultisigMode,
    validate_config,
)
from quick_multisig.features.proposal.session import ProposalSession
from quick_multisig.features.signers.models import (
    PasskeySigner,
    PublicKeySigner,
    ResolvedSigner,
    ResolverContext,
    SignerDefinition,
    WalletSigner,
    ZkLoginSigner,
    signer_from_dict,
)
from quick_multisig.features.signers.resolver import SignerResolver
from quick_multisig.features.signers.validators import (
    calculate_total_weight,
    validate_signer,
)
from quick_multisig.shared.chain import ChainError, SuiRpcClient
from quick_multisig.shared.errors import (
    InvalidConfigError,
    InvalidSignerError,
    InvalidThresholdError,
    MultisigError,
    MultisigErrorCode,
)
from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.network import NetworkError
from quick_multisig.shared.protocols import (
    ChainClient,
    CredentialService,
    MultisigPrimitives,
    TransactionRequest,
)
from quick_multisig.shared.storage import KeyValueStore
from quick_multisig.shared.validation import (
    ThresholdValidator,
    WeightValidator,
    normalize_sui_address,
)

logger = get_logger(__name__)

LEGACY_PASSKEY_NAME = "Passkey"


@dataclass(frozen=True)
class MultisigState:
    config: MultisigConfig | None
    mode: MultisigMode | None
    threshold: int
    signers: tuple[ResolvedSigner, ...]
    resolved_count: int
    total_weight: int
    address: str | None
    address_ready: bool
    is_ready: bool
    error: str | None
    network: str | None


def _normalized(address: str | None) -> str | None:
    if not address:
        return None
    return normalize_sui_address(address)


IDENTITY_KEY_TYPES = {
    SignerKeyType.PASSKEY: PasskeySigner.kind,
    SignerKeyType.ZKLOGIN: ZkLoginSigner.kind,
}


def identity_kind(signer: SignerDefinition) -> str:
    """Signer kind, counting inline passkey and zkLogin keys as those identities."""
    if not isinstance(signer, PublicKeySigner):
        return signer.kind
    try:
        key_type = SignerKeyType(signer.key_type)
    except ValueError:
        return signer.kind
    return IDENTITY_KEY_TYPES.get(key_type, signer.kind)


def with_derived_address(signer: PublicKeySigner) -> PublicKeySigner:
    """Replace the stored address with the one derived from the key.

    Signers whose key cannot be parsed are returned unchanged; resolution
    reports the parse failure.
    """
    try:
        public_key = parse_public_key(signer.public_key, signer.key_type)
    except MultisigError:
        return signer
    derived = public_key.to_sui_address()
    if signer.address == derived:
        return signer
    return replace(signer, address=derived)


def migrate_loaded_signer(signer: SignerDefinition) -> SignerDefinition:
    """Reconcile one persisted signer.

    Passkeys were once saved as ``secp256r1`` keys named "Passkey"; the
    passkey flag derives a different address, so they are moved to the
    ``passkey`` key type. Inline key addresses are always recomputed.
    """
    if not isinstance(signer, PublicKeySigner):
        return signer
    if (
        signer.name == LEGACY_PASSKEY_NAME
        and signer.key_type == SignerKeyType.SECP256R1
    ):
        logger.info("Migrating saved passkey signer from secp256r1 to passkey key type")
        signer = replace(signer, key_type=SignerKeyType.PASSKEY)
    return with_derived_address(signer)


class MultisigCoordinator:
    """Owns the canonical signer list and threshold for one multisig account.

    Construct one per application and pass it to whatever needs it.
    """

    def __init__(
        self,
        primitives: MultisigPrimitives,
        chain_client: ChainClient | None = None,
        credentials: CredentialService | None = None,
        store: KeyValueStore | None = None,
        resolver: SignerResolver | None = None,
    ):
        self.primitives = primitives
        self.credentials = credentials
        self.store = store
        self.resolver = resolver or SignerResolver()
        self._chain_client_override = chain_client
        self._chain_client: ChainClient | None = chain_client
        self._listeners: list[Callable[[MultisigState], None]] = []
        self._init_state()

    def _init_state(self) -> None:
        self._config: MultisigConfig | None = None
        self._mode: MultisigMode | None = None
        self._threshold = 1
        self._definitions: list[SignerDefinition] = []
        self._resolved: list[ResolvedSigner] = []
        self._address: str | None = None
        self._error: str | None = None
        self._context: ResolverContext | None = None
        self._chain_client = self._chain_client_override

    # Read-only views

    @property
    def config(self) -> MultisigConfig | None:
        return self._config

    @property
    def mode(self) -> MultisigMode | None:
        return self._mode

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def network(self) -> str | None:
        return self._config.network if self._config else None

    @property
    def definitions(self) -> tuple[SignerDefinition, ...]:
        return tuple(self._definitions)

    @property
    def signers(self) -> tuple[ResolvedSigner, ...]:
        return tuple(self._resolved)

    @property
    def resolved_count(self) -> int:
        return sum(1 for signer in self._resolved if signer.resolved)

    @property
    def total_weight(self) -> int:
        return sum(signer.weight for signer in self._resolved)

    @property
    def all_resolved(self) -> bool:
        return bool(self._resolved) and self.resolved_count == len(self._resolved)

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def is_ready(self) -> bool:
        return self._address is not None and self._threshold <= self.total_weight

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def state(self) -> MultisigState:
        return MultisigState(
            config=self._config,
            mode=self._mode,
            threshold=self._threshold,
            signers=tuple(self._resolved),
            resolved_count=self.resolved_count,
            total_weight=self.total_weight,
            address=self._address,
            address_ready=self._address is not None,
            is_ready=self.is_ready,
            error=self._error,
            network=self.network,
        )

    # Change notification

    def subscribe(
        self, callback: Callable[[MultisigState], None]
    ) -> Callable[[], None]:
        """Call ``callback`` with a new state after every change.

        Returns a function that removes the subscription.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.state
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception as e:
                logger.error("Error in multisig state callback: %s", e)

    # Resolution and derivation

    def _live_context(self) -> ResolverContext:
        if self.credentials is not None:
            return self.credentials.resolver_context()
        return self._context or ResolverContext()

    def _recompute(self) -> None:
        if not self._definitions:
            self._resolved = []
        else:
            self._resolved = self.resolver.resolve_all(
                self._definitions, self._context or ResolverContext()
            )

        if self.all_resolved:
            self._address = derive_multisig_address(
                self._resolved, self._threshold, self.primitives
            )
        else:
            self._address = None

    def _refresh(self) -> None:
        self._context = self._live_context() if self.credentials else self._context
        self._recompute()
        self._notify()

    def resolve_signers(self, context: ResolverContext | None = None) -> None:
        """Re-resolve every signer against ``context`` or the live context."""
        self._context = context or self._live_context()
        self._recompute()
        logger.debug(
            "Resolved %d/%d signers, address %s",
            self.resolved_count,
            len(self._resolved),
            self._address or "not derivable",
        )
        self._notify()

    def refresh_signers(self) -> None:
        self.resolve_signers()

    # Lifecycle

    def initialize(self, config: MultisigConfig) -> None:
        """Load ``config`` and resolve its signers.

        Raises:
            InvalidConfigError: if the config fails validation.
        """
        validate_config(config)

        self._config = config
        self._mode = config.mode
        self._error = None
        self._threshold = config.threshold
        self._definitions = list(config.signers)
        if self._chain_client_override is None:
            self._chain_client = SuiRpcClient(network=config.network)

        if config.mode == MultisigMode.DYNAMIC and config.storage_key:
            saved = self._read_saved(config.storage_key)
            if saved is not None:
                self._definitions, self._threshold = saved

        logger.info(
            "Initialized %s multisig with %d signer(s), threshold %d",
            config.mode.value,
            len(self._definitions),
            self._threshold,
        )
        self.resolve_signers()

    def reset(self) -> None:
        self._init_state()
        self._notify()

    # Mutations (dynamic mode only)

    def _require_dynamic(self, action: str) -> None:
        if self._mode is None:
            raise InvalidConfigError(f"Cannot {action}: multisig is not initialized")
        if self._mode != MultisigMode.DYNAMIC:
            raise InvalidConfigError(f"Cannot {action} in fixed mode")

    def _find_resolved_index(self, signer_id: str) -> int:
        for index, signer in enumerate(self._resolved):
            if signer.id == signer_id:
                return index
        raise InvalidSignerError(f"Signer '{signer_id}' not found")

    def _is_duplicate(
        self,
        kind: str,
        address: str | None = None,
        public_key: str | None = None,
    ) -> bool:
        address = _normalized(address)
        single_identity = kind in IDENTITY_KEY_TYPES.values()
        for existing in self._definitions:
            if single_identity and identity_kind(existing) == kind:
                return True
            if (
                isinstance(existing, WalletSigner)
                and kind == WalletSigner.kind
                and _normalized(existing.address) == address
            ):
                return True
            if isinstance(existing, PublicKeySigner):
                if public_key and existing.public_key == public_key:
                    return True
                if address and _normalized(existing.address) == address:
                    return True
        return False

    def add_signer(self, signer: SignerDefinition) -> None:
        """Append a signer.

        Raises:
            InvalidConfigError: in fixed mode.
            InvalidSignerError: if the signer is invalid or already present.
        """
        self._require_dynamic("add signers")

        errors = validate_signer(signer, len(self._definitions))
        if errors:
            raise InvalidSignerError("; ".join(errors))

        if isinstance(signer, PublicKeySigner):
            signer = with_derived_address(signer)

        if self._is_duplicate(
            identity_kind(signer), signer.address, getattr(signer, "public_key", None)
        ):
            raise InvalidSignerError(f"This {signer.kind} signer is already added")

        self._definitions.append(signer)
        self._error = None
        logger.info("Added %s signer (weight %d)", signer.kind, signer.weight)
        self._refresh()

    async def add_signer_from_current_wallet(
        self, weight: int = 1, name: str | None = None
    ) -> SignerDefinition:
        """Add the currently connected identity as a signer.

        A live passkey wins, then a zkLogin session, then a plain wallet
        whose public key can be read.

        Raises:
            InvalidConfigError: in fixed mode.
            InvalidSignerError: if the identity is already a signer.
            MultisigError: ``WALLET_NOT_CONNECTED`` when nothing usable is
                connected.
        """
        self._require_dynamic("add signers")
        if self.credentials is None:
            raise MultisigError(
                MultisigErrorCode.WALLET_NOT_CONNECTED, "No credential service configured"
            )

        context = self.credentials.resolver_context()
        signer: SignerDefinition

        if context.passkey_public_key is not None or context.passkey_address:
            address = context.passkey_address
            if context.passkey_public_key is not None:
                address = address or context.passkey_public_key.to_sui_address()
            if self._is_duplicate(PasskeySigner.kind, address):
                raise InvalidSignerError("This passkey is already added as a signer")

            if context.passkey_public_key is not None:
                signer = PublicKeySigner(
                    public_key=context.passkey_public_key.to_base64(),
                    key_type=SignerKeyType.PASSKEY,
                    weight=weight,
                    name=name or "Passkey",
                    address=address,
                )
            else:
                signer = PasskeySigner(weight=weight, name=name or "Passkey", address=address)

        elif context.zklogin_address:
            address = context.zklogin_address
            if self._is_duplicate(ZkLoginSigner.kind, address):
                raise InvalidSignerError("This zkLogin account is already added as a signer")

            public_key = await self.credentials.current_public_key()
            if public_key is not None and public_key.key_type == SignerKeyType.ZKLOGIN:
                signer = PublicKeySigner(
                    public_key=public_key.to_base64(),
                    key_type=SignerKeyType.ZKLOGIN,
                    weight=weight,
                    name=name or "zkLogin",
                    address=address,
                )
            else:
                signer = ZkLoginSigner(
                    weight=weight,
                    name=name or "zkLogin",
                    address=address,
                    address_seed=context.zklogin_address_seed,
                    issuer=context.zklogin_issuer,
                )

        else:
            public_key = await self.credentials.current_public_key()
            if public_key is None:
                if not context.connected_wallets:
                    raise MultisigError(
                        MultisigErrorCode.WALLET_NOT_CONNECTED, "No wallet connected"
                    )
                raise MultisigError(
                    MultisigErrorCode.WALLET_NOT_CONNECTED,
                    "Could not get public key from wallet. This wallet may not support multisig.",
                )

            address = public_key.to_sui_address()
            encoded = public_key.to_base64()
            if self._is_duplicate(PublicKeySigner.kind, address, encoded):
                raise InvalidSignerError("This wallet is already added as a signer")

            key_type = (
                public_key.key_type
                if public_key.key_type in (SignerKeyType.SECP256K1, SignerKeyType.SECP256R1)
                else SignerKeyType.ED25519
            )
            signer = PublicKeySigner(
                public_key=encoded,
                key_type=key_type,
                weight=weight,
                name=name or "Wallet",
                address=address,
            )

        errors = validate_signer(signer, len(self._definitions))
        if errors:
            raise InvalidSignerError("; ".join(errors))

        self._definitions.append(signer)
        self._error = None
        logger.info("Added %s signer from current wallet", signer.kind)
        self._refresh()
        return signer

    def remove_signer(self, signer_id: str) -> None:
        """Remove a signer by id.

        Raises:
            InvalidThresholdError: if the remaining weight would fall below
                the threshold.
        """
        self._require_dynamic("remove signers")
        index = self._find_resolved_index(signer_id)

        remaining = self._definitions[:index] + self._definitions[index + 1 :]
        remaining_weight = calculate_total_weight(remaining)
        if remaining_weight < self._threshold:
            raise InvalidThresholdError(
                f"Cannot remove signer: remaining weight ({remaining_weight}) "
                f"would fall below threshold ({self._threshold})"
            )

        self._definitions = remaining
        logger.info("Removed signer %s", signer_id)
        self._refresh()

    def update_signer_weight(self, signer_id: str, weight: int) -> None:
        self._require_dynamic("update signers")
        index = self._find_resolved_index(signer_id)

        result = WeightValidator.validate(weight)
        if not result.is_valid:
            raise InvalidSignerError(result.error_message or "Invalid weight")

        updated = list(self._definitions)
        updated[index] = replace(updated[index], weight=weight)
        new_total = calculate_total_weight(updated)
        if new_total < self._threshold:
            raise InvalidThresholdError(
                f"Cannot change weight: total weight ({new_total}) "
                f"would fall below threshold ({self._threshold})"
            )

        self._definitions = updated
        logger.info("Updated weight of signer %s to %d", signer_id, weight)
        self._refresh()

    def set_threshold(self, threshold: int) -> None:
        self._require_dynamic("change threshold")
        result = ThresholdValidator.validate(
            threshold, calculate_total_weight(self._definitions)
        )
        if not result.is_valid:
            raise InvalidThresholdError(result.error_message or "Invalid threshold")

        self._threshold = threshold
        logger.info("Threshold set to %d", threshold)
        self._refresh()

    # Persistence

    def _storage_key(self, storage_key: str | None = None) -> str | None:
        if storage_key:
            return storage_key
        return self._config.storage_key if self._config else None

    def _read_saved(
        self, storage_key: str
    ) -> tuple[list[SignerDefinition], int] | None:
        if self.store is None:
            return None

        try:
            data = self.store.get(storage_key)
        except Exception as e:
            logger.error("Failed to read saved multisig config '%s': %s", storage_key, e)
            return None
        if data is None:
            return None

        raw_signers = data.get("signers")
        threshold: Any = data.get("threshold", self._threshold)
        if not isinstance(raw_signers, list):
            logger.warning("Saved multisig config '%s' has no signer list, ignoring", storage_key)
            return None

        try:
            signers = [migrate_loaded_signer(signer_from_dict(raw)) for raw in raw_signers]
        except MultisigError as e:
            logger.warning("Ignoring saved multisig config '%s': %s", storage_key, e.message)
            self._error = e.message
            return None

        problems: list[str] = []
        for index, signer in enumerate(signers):
            problems.extend(validate_signer(signer, index))
        if signers:
            result = ThresholdValidator.validate(threshold, calculate_total_weight(signers))
            if not result.is_valid:
                problems.append(result.error_message or "Invalid threshold")
        elif isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
            problems.append(f"Invalid saved threshold {threshold!r}")

        if problems:
            message = "; ".join(problems)
            logger.warning("Ignoring saved multisig config '%s': %s", storage_key, message)
            self._error = message
            return None

        return signers, threshold

    def save_config(self, storage_key: str | None = None) -> bool:
        """Persist the signer list and threshold. Returns ``False`` on failure."""
        self._require_dynamic("save signers")
        key = self._storage_key(storage_key)
        if not key or self.store is None:
            return False

        payload = {
            "signers": [signer.to_dict() for signer in self._definitions],
            "threshold": self._threshold,
        }
        try:
            saved = self.store.set(key, payload)
        except Exception as e:
            logger.error("Failed to save multisig config '%s': %s", key, e)
            return False
        if saved:
            logger.info("Saved multisig config '%s' (%d signers)", key, len(self._definitions))
        return bool(saved)

    def load_config(self, storage_key: str | None = None) -> bool:
        """Restore a saved signer list; ``False`` means nothing usable was saved."""
        self._require_dynamic("load signers")
        key = self._storage_key(storage_key)
        if not key:
            return False

        saved = self._read_saved(key)
        if saved is None:
            return False

        self._definitions, self._threshold = saved
        self._error = None
        logger.info("Loaded multisig config '%s' (%d signers)", key, len(self._definitions))
        self._refresh()
        return True

    def clear_config(self, storage_key: str | None = None) -> None:
        self._require_dynamic("clear signers")
        key = self._storage_key(storage_key)
        if key and self.store is not None:
            try:
                self.store.remove(key)
            except Exception as e:
                logger.error("Failed to remove saved multisig config '%s': %s", key, e)

        self._definitions = []
        self._threshold = self._config.threshold if self._config else 1
        self._error = None
        self._refresh()

    # Proposals

    def _ensure_ready(self) -> str:
        if not self.is_ready or self._address is None:
            raise MultisigError(
                MultisigErrorCode.PROPOSAL_NOT_READY,
                "Multisig is not ready. Ensure all signers are resolved.",
            )
        return self._address

    async def create_proposal(self, transaction: TransactionRequest) -> ProposalSession:
        """Build ``transaction`` with the multisig address as sender.

        Raises:
            MultisigError: ``PROPOSAL_NOT_READY`` if the multisig is not
                ready or the transaction cannot be built.
        """
        address = self._ensure_ready()
        if self._chain_client is None:
            raise MultisigError(
                MultisigErrorCode.PROPOSAL_NOT_READY, "No chain client configured"
            )

        try:
            tx_bytes = await self._chain_client.build(transaction, address)
        except (ChainError, NetworkError) as e:
            self._error = str(e)
            raise MultisigError(
                MultisigErrorCode.PROPOSAL_NOT_READY,
                f"Failed to build transaction: {e}",
                e,
            ) from e

        return self.create_proposal_from_bytes(tx_bytes, transaction)

    def create_proposal_from_bytes(
        self,
        tx_bytes: bytes,
        transaction: TransactionRequest | None = None,
    ) -> ProposalSession:
        address = self._ensure_ready()
        session = ProposalSession(
            tx_bytes=tx_bytes,
            multisig_address=address,
            threshold=self._threshold,
            signers=list(self._resolved),
            primitives=self.primitives,
            chain_client=self._chain_client,
            credentials=self.credentials,
            transaction=transaction,
        )
        logger.info(
            "Created proposal %s for %s (%d bytes, threshold %d)",
            session.proposal_id,
            address,
            len(session.tx_bytes),
            self._threshold,
        )
        return session
