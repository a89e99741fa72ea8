"""Resolution of signer definitions into key material and addresses.

Resolution never raises. A signer that cannot be resolved comes back with
``resolved=False`` and an ``error`` so partial results stay usable.

``resolved=True`` only means the signer can take part in address
derivation. Passkey and zkLogin signers known by a saved address alone are
resolved but cannot sign until their live credential reconnects.
"""

from __future__ import annotations

from quick_multisig.crypto.keys import (
    PublicKey,
    SignerKeyType,
    key_type_from_flag,
    parse_public_key,
    zklogin_public_identifier,
)
from quick_multisig.features.signers.models import (
    PasskeySigner,
    PublicKeySigner,
    ResolvedSigner,
    ResolverContext,
    SignerDefinition,
    WalletSigner,
    ZkLoginSigner,
)
from quick_multisig.shared.errors import MultisigError
from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.validation import normalize_sui_address

logger = get_logger(__name__)


def generate_signer_id(signer: SignerDefinition, index: int) -> str:
    if isinstance(signer, PasskeySigner):
        return f"passkey-{index}"
    if isinstance(signer, ZkLoginSigner):
        return f"zklogin-{index}"
    if isinstance(signer, WalletSigner):
        return f"wallet-{str(signer.address)[:10]}-{index}"
    if isinstance(signer, PublicKeySigner):
        return f"pubkey-{str(signer.public_key)[:8]}-{index}"
    return f"signer-{index}"


def _same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return normalize_sui_address(a) == normalize_sui_address(b)


def _resolved_type(key_type: SignerKeyType | str) -> SignerKeyType:
    if isinstance(key_type, SignerKeyType):
        return key_type
    return SignerKeyType.ED25519


class SignerResolver:
    def resolve(
        self, signer: SignerDefinition, index: int, context: ResolverContext
    ) -> ResolvedSigner:
        signer_id = generate_signer_id(signer, index)
        weight = signer.weight
        try:
            if isinstance(signer, PasskeySigner):
                return self._resolve_passkey(signer_id, signer, context)
            if isinstance(signer, ZkLoginSigner):
                return self._resolve_zklogin(signer_id, signer, context)
            if isinstance(signer, WalletSigner):
                return self._resolve_wallet(signer_id, signer, context)
            if isinstance(signer, PublicKeySigner):
                return self._resolve_public_key(signer_id, signer)
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ED25519,
                weight=weight,
                resolved=False,
                error=f"Unknown signer type: {type(signer).__name__}",
            )
        except Exception as e:
            logger.warning("Failed to resolve signer %s: %s", signer_id, e)
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ED25519,
                weight=weight,
                name=signer.name,
                resolved=False,
                error=str(e),
            )

    def resolve_all(
        self, signers: list[SignerDefinition], context: ResolverContext
    ) -> list[ResolvedSigner]:
        return [
            self.resolve(signer, index, context) for index, signer in enumerate(signers)
        ]

    def _resolve_passkey(
        self, signer_id: str, signer: PasskeySigner, context: ResolverContext
    ) -> ResolvedSigner:
        name = signer.name or "Passkey"
        address = signer.address or context.passkey_address
        live_key = context.passkey_public_key

        if live_key is None:
            if address:
                return ResolvedSigner(
                    id=signer_id,
                    type=SignerKeyType.PASSKEY,
                    weight=signer.weight,
                    name=name,
                    address=address,
                    resolved=True,
                )
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.PASSKEY,
                weight=signer.weight,
                name=name,
                resolved=False,
                error="Passkey wallet not connected",
            )

        return ResolvedSigner(
            id=signer_id,
            type=SignerKeyType.PASSKEY,
            weight=signer.weight,
            name=name,
            public_key=live_key,
            public_key_base64=live_key.to_base64(),
            address=address or live_key.to_sui_address(),
            resolved=True,
        )

    def _resolve_zklogin(
        self, signer_id: str, signer: ZkLoginSigner, context: ResolverContext
    ) -> ResolvedSigner:
        name = signer.name or "zkLogin"

        if signer.address_seed and signer.issuer:
            identifier = zklogin_public_identifier(signer.address_seed, signer.issuer)
            derived = identifier.to_sui_address()
            if signer.address and not _same_address(signer.address, derived):
                logger.warning(
                    "Signer '%s' saved zkLogin address %s differs from derived %s, using derived",
                    signer_id,
                    signer.address,
                    derived,
                )
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ZKLOGIN,
                weight=signer.weight,
                name=name,
                public_key=identifier,
                public_key_base64=identifier.to_base64(),
                address=derived,
                address_seed=signer.address_seed,
                issuer=signer.issuer,
                resolved=True,
            )

        address = signer.address or context.zklogin_address
        if not address:
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ZKLOGIN,
                weight=signer.weight,
                name=name,
                resolved=False,
                error="zkLogin wallet not connected and no saved address",
            )

        identifier = context.zklogin_public_identifier
        if (
            _same_address(context.zklogin_address, address)
            and identifier is not None
            and context.zklogin_address_seed
            and context.zklogin_issuer
        ):
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ZKLOGIN,
                weight=signer.weight,
                name=name,
                public_key=identifier,
                public_key_base64=identifier.to_base64(),
                address=address,
                address_seed=context.zklogin_address_seed,
                issuer=context.zklogin_issuer,
                resolved=True,
            )

        return ResolvedSigner(
            id=signer_id,
            type=SignerKeyType.ZKLOGIN,
            weight=signer.weight,
            name=name,
            address=address,
            resolved=True,
        )

    def _resolve_wallet(
        self, signer_id: str, signer: WalletSigner, context: ResolverContext
    ) -> ResolvedSigner:
        name = signer.name or f"Wallet {signer.address[:8]}..."
        wallet = context.get_wallet(signer.address)

        if wallet is None:
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ED25519,
                weight=signer.weight,
                name=name,
                address=signer.address,
                resolved=False,
                error="Wallet not connected",
            )

        if wallet.public_key is None:
            return ResolvedSigner(
                id=signer_id,
                type=SignerKeyType.ED25519,
                weight=signer.weight,
                name=name,
                address=signer.address,
                resolved=True,
            )

        return ResolvedSigner(
            id=signer_id,
            type=key_type_from_flag(wallet.public_key.flag),
            weight=signer.weight,
            name=name,
            public_key=wallet.public_key,
            public_key_base64=wallet.public_key.to_base64(),
            address=signer.address,
            resolved=True,
        )

    def _resolve_public_key(
        self, signer_id: str, signer: PublicKeySigner
    ) -> ResolvedSigner:
        name = signer.name or f"PublicKey {signer.public_key[:8]}..."
        resolved_type = _resolved_type(signer.key_type)

        try:
            public_key: PublicKey = parse_public_key(signer.public_key, signer.key_type)
        except MultisigError as e:
            logger.warning("Signer '%s' public key could not be parsed: %s", signer_id, e)
            return ResolvedSigner(
                id=signer_id,
                type=resolved_type,
                weight=signer.weight,
                name=name,
                public_key_base64=signer.public_key,
                address=signer.address,
                resolved=False,
                error=e.message,
            )

        derived = public_key.to_sui_address()
        if signer.address and not _same_address(signer.address, derived):
            logger.warning(
                "Signer '%s' persisted address mismatch (persisted %s, derived %s), using derived",
                signer_id,
                signer.address,
                derived,
            )

        return ResolvedSigner(
            id=signer_id,
            type=public_key.key_type,
            weight=signer.weight,
            name=name,
            public_key=public_key,
            public_key_base64=signer.public_key,
            address=derived,
            resolved=True,
        )
