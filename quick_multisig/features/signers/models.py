"""Signer definitions, resolved signers and the resolution context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from quick_multisig.crypto.keys import PublicKey, SignerKeyType
from quick_multisig.shared.errors import InvalidSignerError
from quick_multisig.shared.validation import normalize_sui_address


def _optional(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    return value if value not in ("", None) else None


@dataclass(frozen=True)
class PasskeySigner:
    """Hardware authenticator signer, optionally with its saved address."""

    kind: ClassVar[str] = "passkey"

    weight: int = 1
    name: str | None = None
    address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty(
            {"type": self.kind, "weight": self.weight, "name": self.name, "address": self.address}
        )


@dataclass(frozen=True)
class ZkLoginSigner:
    """Federated identity signer.

    ``address_seed`` and ``issuer`` are known once the identity has been
    seen live; with both present the public identifier can be rebuilt
    without a connected wallet.
    """

    kind: ClassVar[str] = "zklogin"

    weight: int = 1
    name: str | None = None
    address: str | None = None
    address_seed: str | None = None
    issuer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty(
            {
                "type": self.kind,
                "weight": self.weight,
                "name": self.name,
                "address": self.address,
                "addressSeed": self.address_seed,
                "issuer": self.issuer,
            }
        )


@dataclass(frozen=True)
class WalletSigner:
    kind: ClassVar[str] = "wallet"

    address: str
    weight: int = 1
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty(
            {"type": self.kind, "address": self.address, "weight": self.weight, "name": self.name}
        )


@dataclass(frozen=True)
class PublicKeySigner:
    """Signer given by an inline base64 public key.

    ``address`` is informational only; resolution always re-derives it
    from the key.
    """

    kind: ClassVar[str] = "publicKey"

    public_key: str
    key_type: SignerKeyType | str
    weight: int = 1
    name: str | None = None
    address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        key_type = (
            self.key_type.value
            if isinstance(self.key_type, SignerKeyType)
            else self.key_type
        )
        return _drop_empty(
            {
                "type": self.kind,
                "publicKey": self.public_key,
                "keyType": key_type,
                "weight": self.weight,
                "name": self.name,
                "address": self.address,
            }
        )


SignerDefinition = Union[PasskeySigner, ZkLoginSigner, WalletSigner, PublicKeySigner]

SIGNER_KINDS = ("passkey", "zklogin", "wallet", "publicKey")


def _drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _key_type(value: Any) -> SignerKeyType | str:
    try:
        return SignerKeyType(value)
    except ValueError:
        return value if isinstance(value, str) else ""


def signer_from_dict(data: dict[str, Any]) -> SignerDefinition:
    """Build a signer definition from its persisted camelCase shape.

    Field values are carried over as-is; use
    :func:`~quick_multisig.features.signers.validators.validate_signer` to
    check them.

    Raises:
        InvalidSignerError: if ``data`` is not an object or has an unknown type.
    """
    if not isinstance(data, dict):
        raise InvalidSignerError(f"Invalid signer definition: {data!r}")

    kind = data.get("type")
    weight = data.get("weight", 1)
    name = _optional(data, "name")

    if kind == PasskeySigner.kind:
        return PasskeySigner(weight=weight, name=name, address=_optional(data, "address"))

    if kind == ZkLoginSigner.kind:
        address_seed = _optional(data, "addressSeed")
        return ZkLoginSigner(
            weight=weight,
            name=name,
            address=_optional(data, "address"),
            address_seed=str(address_seed) if address_seed is not None else None,
            issuer=_optional(data, "issuer"),
        )

    if kind == WalletSigner.kind:
        return WalletSigner(address=data.get("address") or "", weight=weight, name=name)

    if kind == PublicKeySigner.kind:
        return PublicKeySigner(
            public_key=data.get("publicKey") or "",
            key_type=_key_type(data.get("keyType")),
            weight=weight,
            name=name,
            address=_optional(data, "address"),
        )

    raise InvalidSignerError(f"Unknown signer type '{kind}'")


@dataclass
class ResolvedSigner:
    id: str
    type: SignerKeyType
    weight: int
    name: str | None = None
    public_key: PublicKey | None = None
    public_key_base64: str | None = None
    address: str | None = None
    address_seed: str | None = None
    issuer: str | None = None
    resolved: bool = False
    error: str | None = None

    @property
    def has_key_material(self) -> bool:
        if self.public_key is not None:
            return True
        return (
            self.type == SignerKeyType.ZKLOGIN
            and bool(self.address_seed)
            and bool(self.issuer)
        )


@dataclass(frozen=True)
class ConnectedWallet:
    address: str
    public_key: PublicKey | None = None


@dataclass
class ResolverContext:
    """Live credential state supplied by the host application."""

    passkey_public_key: PublicKey | None = None
    passkey_address: str | None = None
    zklogin_public_identifier: PublicKey | None = None
    zklogin_address_seed: str | None = None
    zklogin_issuer: str | None = None
    zklogin_address: str | None = None
    connected_wallets: dict[str, ConnectedWallet] = field(default_factory=dict)

    def __post_init__(self):
        wallets = list(self.connected_wallets.values())
        self.connected_wallets = {}
        for wallet in wallets:
            self.add_wallet(wallet.address, wallet.public_key)

    def add_wallet(self, address: str, public_key: PublicKey | None = None) -> None:
        normalized = normalize_sui_address(address)
        self.connected_wallets[normalized] = ConnectedWallet(normalized, public_key)

    def get_wallet(self, address: str | None) -> ConnectedWallet | None:
        if not address:
            return None
        return self.connected_wallets.get(normalize_sui_address(address))

    def connected_addresses(self) -> set[str]:
        return set(self.connected_wallets)
