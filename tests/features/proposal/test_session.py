from unittest.mock import patch

import pytest

from quick_multisig.crypto.keypairs import Ed25519Keypair
from quick_multisig.crypto.keys import SignerKeyType
from quick_multisig.features.account.service import derive_multisig_address
from quick_multisig.features.proposal.session import ProposalSession, ProposalState
from quick_multisig.features.signers.models import ResolvedSigner, ResolverContext
from quick_multisig.features.wallet.service import LocalCredentialService
from quick_multisig.shared.chain import ChainError
from quick_multisig.shared.errors import (
    ExecutionFailedError,
    InsufficientSignaturesError,
    MultisigError,
    MultisigErrorCode,
    SignerMismatchError,
)
from quick_multisig.shared.protocols import GroupMember
from tests.fakes import (
    FailingPrimitives,
    FakeChainClient,
    FakeGroupPublicKey,
    FakePrimitives,
    StaticCredentialService,
    passkey_public_key,
    passkey_sign,
)

TX_BYTES = b"unsafe_transferSui:multisig-proposal"


def resolved(keypair, weight=1, index=0, public_key=None, signer_type=None):
    key = public_key or keypair.public_key
    return ResolvedSigner(
        id=f"signer-{index}",
        type=signer_type or key.key_type,
        weight=weight,
        public_key=key,
        public_key_base64=key.to_base64(),
        address=key.to_sui_address(),
        resolved=True,
    )


def make_session(signers, threshold, primitives=None, chain_client=None, credentials=None):
    primitives = primitives or FakePrimitives()
    address = derive_multisig_address(signers, threshold, primitives)
    assert address is not None
    return ProposalSession(
        tx_bytes=TX_BYTES,
        multisig_address=address,
        threshold=threshold,
        signers=signers,
        primitives=primitives,
        chain_client=chain_client or FakeChainClient(),
        credentials=credentials,
    )


def canonical_key(keypair):
    return keypair.public_key.to_sui_bytes()


class UnverifiableGroupKey(FakeGroupPublicKey):
    def verify_transaction(self, tx_bytes, signature):
        raise NotImplementedError("verification not supported")


class UnverifiablePrimitives:
    def group_public_key(self, threshold, members):
        return UnverifiableGroupKey(threshold, members)


@pytest.mark.unit
class TestSignatureCollection:
    def test_re_sign_does_not_double_count(self, keypairs):
        signers = [resolved(kp, 2, i) for i, kp in enumerate(keypairs)]
        session = make_session(signers, 4)
        first = keypairs[0].sign_transaction(TX_BYTES)
        second = keypairs[0].sign_transaction(TX_BYTES + b"again")

        session.sign_with_signer("signer-0", first)
        session.sign_with_signer("signer-0", second)

        assert session.signed_weight == 2
        assert session.signatures == {"signer-0": second}

    def test_unknown_signer(self, keypairs):
        session = make_session([resolved(keypairs[0])], 1)
        with pytest.raises(SignerMismatchError) as exc_info:
            session.sign_with_signer("signer-9", "AAAA")
        assert exc_info.value.code == MultisigErrorCode.SIGNER_MISMATCH

    def test_state_progression(self, keypairs):
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs)]
        session = make_session(signers, 2)
        assert session.state is ProposalState.COLLECTING
        assert not session.can_execute

        session.sign_with_signer("signer-0", keypairs[0].sign_transaction(TX_BYTES))
        assert session.state is ProposalState.COLLECTING

        session.sign_with_signer("signer-2", keypairs[2].sign_transaction(TX_BYTES))
        assert session.state is ProposalState.READY
        assert session.can_execute

    def test_signer_statuses(self, keypairs):
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(signers, 1)
        signature = keypairs[1].sign_transaction(TX_BYTES)
        session.sign_with_signer("signer-1", signature)

        statuses = session.get_signer_statuses()

        assert [s.signed for s in statuses] == [False, True]
        assert statuses[1].signature == signature

    def test_signatures_view_is_a_copy(self, keypairs):
        session = make_session([resolved(keypairs[0])], 1)
        session.signatures["signer-0"] = "tampered"
        assert session.signatures == {}


@pytest.mark.unit
class TestExecute:
    @pytest.mark.asyncio
    async def test_single_signer_weight_two(self, ed25519_keypair):
        chain = FakeChainClient()
        session = make_session([resolved(ed25519_keypair, 2)], 2, chain_client=chain)

        session.sign_with_signer("signer-0", ed25519_keypair.sign_transaction(TX_BYTES))
        assert session.signed_weight == 2

        result = await session.execute()

        assert result.digest
        assert session.result is result
        assert session.state is ProposalState.EXECUTED
        assert chain.executed[0][0] == TX_BYTES

    @pytest.mark.asyncio
    async def test_insufficient_signatures(self, keypairs):
        chain = FakeChainClient()
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(signers, 2, chain_client=chain)
        session.sign_with_signer("signer-0", keypairs[0].sign_transaction(TX_BYTES))

        with pytest.raises(InsufficientSignaturesError) as exc_info:
            await session.execute()

        assert "signed weight (1) < threshold (2)" in exc_info.value.message
        assert session.state is ProposalState.FAILED
        assert session.last_error is exc_info.value
        assert chain.executed == []

    @pytest.mark.asyncio
    async def test_signing_again_clears_failure(self, keypairs):
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(signers, 2)
        session.sign_with_signer("signer-0", keypairs[0].sign_transaction(TX_BYTES))
        with pytest.raises(InsufficientSignaturesError):
            await session.execute()

        session.sign_with_signer("signer-1", keypairs[1].sign_transaction(TX_BYTES))

        assert session.state is ProposalState.READY
        assert (await session.execute()).digest

    @pytest.mark.asyncio
    async def test_execute_twice_rejected(self, ed25519_keypair):
        session = make_session([resolved(ed25519_keypair)], 1)
        session.sign_with_signer("signer-0", ed25519_keypair.sign_transaction(TX_BYTES))
        await session.execute()

        with pytest.raises(MultisigError) as exc_info:
            await session.execute()
        assert exc_info.value.code == MultisigErrorCode.PROPOSAL_NOT_READY

        with pytest.raises(MultisigError) as exc_info:
            session.sign_with_signer("signer-0", "AAAA")
        assert exc_info.value.code == MultisigErrorCode.PROPOSAL_NOT_READY

    @pytest.mark.asyncio
    async def test_signature_from_other_key(self, keypairs):
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(signers, 1)
        session.sign_with_signer("signer-0", keypairs[1].sign_transaction(TX_BYTES))

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.execute()

        assert "Collected signature does not match signer public key" in exc_info.value.message
        assert exc_info.value.rebuild_required

    @pytest.mark.asyncio
    async def test_address_drift(self, keypairs):
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = ProposalSession(
            tx_bytes=TX_BYTES,
            multisig_address="0x" + "99" * 32,
            threshold=1,
            signers=signers,
            primitives=FakePrimitives(),
            chain_client=FakeChainClient(),
        )
        session.sign_with_signer("signer-0", keypairs[0].sign_transaction(TX_BYTES))

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.execute()

        assert "Multisig address mismatch" in exc_info.value.message
        assert exc_info.value.rebuild_required

    @pytest.mark.asyncio
    async def test_primitive_failure_on_rebuild(self, ed25519_keypair):
        session = ProposalSession(
            tx_bytes=TX_BYTES,
            multisig_address="0x" + "99" * 32,
            threshold=1,
            signers=[resolved(ed25519_keypair)],
            primitives=FailingPrimitives(),
        )
        session.sign_with_signer("signer-0", ed25519_keypair.sign_transaction(TX_BYTES))

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.execute()

        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_signatures_outside_public_key_map(self, ed25519_keypair):
        address_only = ResolvedSigner(
            id="passkey-1",
            type=SignerKeyType.PASSKEY,
            weight=2,
            address="0x" + "44" * 32,
            resolved=True,
        )
        session = make_session([resolved(ed25519_keypair), address_only], 1)
        session.sign_with_signer("passkey-1", "AAAA")
        assert session.signed_weight == 2

        with pytest.raises(InsufficientSignaturesError) as exc_info:
            await session.execute()

        assert "Not enough signatures for the multisig public key map" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_chain_failure_is_wrapped(self, ed25519_keypair):
        error = ChainError("sui_executeTransactionBlock failed: Insufficient gas")
        session = make_session(
            [resolved(ed25519_keypair)], 1, chain_client=FakeChainClient(execute_error=error)
        )
        session.sign_with_signer("signer-0", ed25519_keypair.sign_transaction(TX_BYTES))

        with pytest.raises(ExecutionFailedError) as exc_info:
            await session.execute()

        assert exc_info.value.message.startswith("Transaction execution failed: ")
        assert exc_info.value.cause is error
        assert session.state is ProposalState.FAILED

    @pytest.mark.asyncio
    async def test_no_chain_client(self, ed25519_keypair):
        signers = [resolved(ed25519_keypair)]
        primitives = FakePrimitives()
        session = ProposalSession(
            tx_bytes=TX_BYTES,
            multisig_address=derive_multisig_address(signers, 1, primitives),
            threshold=1,
            signers=signers,
            primitives=primitives,
        )
        session.sign_with_signer("signer-0", ed25519_keypair.sign_transaction(TX_BYTES))

        with pytest.raises(ExecutionFailedError):
            await session.execute()

    @pytest.mark.asyncio
    async def test_unverifiable_combination_is_still_submitted(self, keypairs):
        chain = FakeChainClient()
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(
            signers, 2, primitives=UnverifiablePrimitives(), chain_client=chain
        )
        for i in range(2):
            session.sign_with_signer(f"signer-{i}", keypairs[i].sign_transaction(TX_BYTES))

        result = await session.execute()

        assert result.digest
        assert len(chain.executed) == 1


@pytest.mark.unit
class TestCanonicalOrdering:
    @pytest.fixture
    def reversed_keypairs(self):
        pairs = [Ed25519Keypair.generate() for _ in range(3)]
        return sorted(pairs, key=canonical_key, reverse=True)

    @pytest.fixture
    def weighted_session(self, reversed_keypairs):
        signers = [
            resolved(kp, weight, i)
            for i, (kp, weight) in enumerate(zip(reversed_keypairs, [1, 1, 3]))
        ]
        chain = FakeChainClient()
        session = make_session(signers, 3, chain_client=chain)
        for i, kp in enumerate(reversed_keypairs):
            session.sign_with_signer(f"signer-{i}", kp.sign_transaction(TX_BYTES))
        return session, chain

    def test_combination_is_order_sensitive(self, reversed_keypairs):
        members = [
            GroupMember(kp.public_key, weight)
            for kp, weight in zip(reversed_keypairs, [1, 1, 3])
        ]
        group_key = FakeGroupPublicKey(3, members)
        input_order = [kp.sign_transaction(TX_BYTES) for kp in reversed_keypairs]
        canonical_order = list(reversed(input_order))

        assert [m.public_key for m in group_key.members()] != [m.public_key for m in members]
        assert group_key.verify_transaction(TX_BYTES, group_key.combine(input_order)) is False
        assert group_key.verify_transaction(TX_BYTES, group_key.combine(canonical_order)) is True

    @pytest.mark.asyncio
    async def test_execute_feeds_canonical_order(self, weighted_session, reversed_keypairs):
        session, chain = weighted_session

        result = await session.execute()

        assert result.digest
        assert len(chain.executed) == 1

    @pytest.mark.asyncio
    async def test_input_order_fails_verification(self, weighted_session, reversed_keypairs):
        session, chain = weighted_session
        input_order = [session.signatures[f"signer-{i}"] for i in range(3)]

        with patch.object(
            ProposalSession, "_ordered_signatures", lambda self, group_key: input_order
        ):
            with pytest.raises(ExecutionFailedError) as exc_info:
                await session.execute()

        assert "failed local verification" in exc_info.value.message
        assert chain.executed == []


@pytest.mark.unit
class TestSignWithCurrentWallet:
    @pytest.mark.asyncio
    async def test_local_wallets_sign_and_execute(self, keypairs):
        credentials = LocalCredentialService(keypairs[:2])
        signers = [resolved(kp, 1, i) for i, kp in enumerate(keypairs[:2])]
        session = make_session(signers, 2, credentials=credentials)

        assert await session.sign_with_current_wallet() == "signer-0"
        credentials.switch_to(keypairs[1].to_sui_address())
        assert await session.sign_with_current_wallet() == "signer-1"

        assert session.signed_weight == 2
        assert (await session.execute()).digest

    @pytest.mark.asyncio
    async def test_signs_with_multisig_sender(self, ed25519_keypair):
        context = ResolverContext()
        context.add_wallet(ed25519_keypair.to_sui_address(), ed25519_keypair.public_key)
        credentials = StaticCredentialService(
            ed25519_keypair.sign_transaction(TX_BYTES), context=context
        )
        session = make_session([resolved(ed25519_keypair)], 1, credentials=credentials)

        await session.sign_with_current_wallet()

        assert credentials.sign_requests == [(TX_BYTES, session.multisig_address)]

    @pytest.mark.asyncio
    async def test_no_credentials(self, ed25519_keypair):
        session = make_session([resolved(ed25519_keypair)], 1)
        with pytest.raises(MultisigError) as exc_info:
            await session.sign_with_current_wallet()
        assert exc_info.value.code == MultisigErrorCode.WALLET_NOT_CONNECTED

    @pytest.mark.asyncio
    async def test_different_bytes(self, ed25519_keypair):
        context = ResolverContext()
        context.add_wallet(ed25519_keypair.to_sui_address(), ed25519_keypair.public_key)
        credentials = StaticCredentialService(
            ed25519_keypair.sign_transaction(TX_BYTES), context=context, tamper_bytes=True
        )
        session = make_session([resolved(ed25519_keypair)], 1, credentials=credentials)

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.sign_with_current_wallet()

        assert "different tx bytes" in exc_info.value.message
        assert exc_info.value.rebuild_required
        assert session.signatures == {}

    @pytest.mark.asyncio
    async def test_wallet_not_a_signer(self, keypairs):
        credentials = LocalCredentialService([keypairs[2]])
        session = make_session([resolved(keypairs[0])], 1, credentials=credentials)

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.sign_with_current_wallet()

        assert exc_info.value.message == "Current wallet does not match any signer in the multisig"

    @pytest.mark.asyncio
    async def test_signature_from_other_key(self, keypairs):
        context = ResolverContext()
        context.add_wallet(keypairs[0].to_sui_address(), keypairs[0].public_key)
        credentials = StaticCredentialService(
            keypairs[1].sign_transaction(TX_BYTES), context=context
        )
        session = make_session([resolved(keypairs[0])], 1, credentials=credentials)

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.sign_with_current_wallet()

        assert "Signature pubkey mismatch" in exc_info.value.message
        assert exc_info.value.rebuild_required

    @pytest.mark.asyncio
    async def test_passkey_signature(self, secp256r1_keypair):
        live_key = passkey_public_key(secp256r1_keypair)
        signer = resolved(secp256r1_keypair, public_key=live_key)
        credentials = StaticCredentialService(
            passkey_sign(secp256r1_keypair, TX_BYTES),
            context=ResolverContext(passkey_public_key=live_key),
        )
        session = make_session([signer], 1, credentials=credentials)

        assert await session.sign_with_current_wallet() == "signer-0"
        assert (await session.execute()).digest

    @pytest.mark.asyncio
    async def test_passkey_signature_for_other_bytes(self, secp256r1_keypair):
        live_key = passkey_public_key(secp256r1_keypair)
        signer = resolved(secp256r1_keypair, public_key=live_key)
        credentials = StaticCredentialService(
            passkey_sign(secp256r1_keypair, b"some other transaction"),
            context=ResolverContext(passkey_public_key=live_key),
        )
        session = make_session([signer], 1, credentials=credentials)

        with pytest.raises(SignerMismatchError) as exc_info:
            await session.sign_with_current_wallet()

        assert "Passkey signature failed local verification" in exc_info.value.message
        assert session.signatures == {}
