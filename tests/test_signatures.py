import base64

import pytest

from quick_multisig.crypto.keypairs import Ed25519Keypair
from quick_multisig.crypto.keys import SignatureScheme, SignerKeyType
from quick_multisig.crypto.signatures import (
    SECP256K1_ORDER,
    SignatureFormatError,
    VerificationOutcome,
    parse_serialized_signature,
    signature_address,
    transaction_digest,
    verify_transaction_signature,
)
from tests.fakes import passkey_public_key, passkey_sign

TX_BYTES = b"programmable-transaction:transfer-sui"


@pytest.mark.unit
class TestKeypairs:
    def test_from_seed_is_deterministic(self):
        seed = bytes(range(32))
        assert (
            Ed25519Keypair.from_seed(seed).to_sui_address()
            == Ed25519Keypair.from_seed(seed).to_sui_address()
        )

    def test_serialized_layout(self, ed25519_keypair):
        raw = base64.b64decode(ed25519_keypair.sign_transaction(TX_BYTES))
        assert raw[0] == 0x00
        assert len(raw) == 1 + 64 + 32
        assert raw[65:] == ed25519_keypair.public_key.raw

    def test_secp256k1_signature_is_low_s(self, secp256k1_keypair):
        for index in range(8):
            signature = secp256k1_keypair.sign(bytes([index]) * 32)
            s = int.from_bytes(signature[32:], "big")
            assert s <= SECP256K1_ORDER // 2


@pytest.mark.unit
class TestParseSerializedSignature:
    def test_parse_ed25519(self, ed25519_keypair):
        parsed = parse_serialized_signature(ed25519_keypair.sign_transaction(TX_BYTES))
        assert parsed.scheme == SignatureScheme.ED25519
        assert parsed.public_key == ed25519_keypair.public_key
        assert len(parsed.signature) == 64

    def test_parse_passkey(self, secp256r1_keypair):
        parsed = parse_serialized_signature(passkey_sign(secp256r1_keypair, TX_BYTES))
        assert parsed.scheme == SignatureScheme.PASSKEY
        assert parsed.public_key.key_type == SignerKeyType.PASSKEY
        assert parsed.public_key.raw == secp256r1_keypair.public_key.raw
        assert "webauthn.get" in parsed.client_data_json

    def test_zklogin_has_no_public_key(self):
        encoded = base64.b64encode(b"\x05" + bytes(40)).decode()
        parsed = parse_serialized_signature(encoded)
        assert parsed.scheme == SignatureScheme.ZKLOGIN
        assert parsed.public_key is None

    def test_unknown_flag(self):
        with pytest.raises(SignatureFormatError):
            parse_serialized_signature(base64.b64encode(b"\x09" + bytes(96)).decode())

    def test_not_base64(self):
        with pytest.raises(SignatureFormatError):
            parse_serialized_signature("@@@")

    def test_truncated_passkey(self):
        with pytest.raises(SignatureFormatError):
            parse_serialized_signature(base64.b64encode(b"\x06\x25" + bytes(4)).decode())

    def test_signature_address(self, secp256k1_keypair):
        signature = secp256k1_keypair.sign_transaction(TX_BYTES)
        assert signature_address(signature) == secp256k1_keypair.to_sui_address()

    def test_signature_address_unknown(self):
        assert signature_address("garbage") is None
        assert signature_address(base64.b64encode(b"\x05" + bytes(40)).decode()) is None


@pytest.mark.unit
class TestVerifyTransactionSignature:
    @pytest.mark.parametrize(
        "fixture_name", ["ed25519_keypair", "secp256k1_keypair", "secp256r1_keypair"]
    )
    def test_verified(self, fixture_name, request):
        keypair = request.getfixturevalue(fixture_name)
        signature = keypair.sign_transaction(TX_BYTES)
        outcome = verify_transaction_signature(TX_BYTES, signature, keypair.public_key)
        assert outcome is VerificationOutcome.VERIFIED

    def test_other_bytes_rejected(self, ed25519_keypair):
        signature = ed25519_keypair.sign_transaction(TX_BYTES)
        outcome = verify_transaction_signature(TX_BYTES + b"!", signature)
        assert outcome is VerificationOutcome.REJECTED

    def test_other_key_rejected(self, keypairs):
        signature = keypairs[0].sign_transaction(TX_BYTES)
        outcome = verify_transaction_signature(TX_BYTES, signature, keypairs[1].public_key)
        assert outcome is VerificationOutcome.REJECTED

    def test_unparseable_is_indeterminate(self):
        assert (
            verify_transaction_signature(TX_BYTES, "not-a-signature")
            is VerificationOutcome.INDETERMINATE
        )

    def test_zklogin_is_indeterminate(self):
        encoded = base64.b64encode(b"\x05" + bytes(40)).decode()
        assert (
            verify_transaction_signature(TX_BYTES, encoded)
            is VerificationOutcome.INDETERMINATE
        )

    def test_passkey_verified(self, secp256r1_keypair):
        signature = passkey_sign(secp256r1_keypair, TX_BYTES)
        outcome = verify_transaction_signature(
            TX_BYTES, signature, passkey_public_key(secp256r1_keypair)
        )
        assert outcome is VerificationOutcome.VERIFIED

    def test_passkey_wrong_challenge_rejected(self, secp256r1_keypair):
        signature = passkey_sign(
            secp256r1_keypair, TX_BYTES, challenge_bytes=transaction_digest(b"other")
        )
        outcome = verify_transaction_signature(TX_BYTES, signature)
        assert outcome is VerificationOutcome.REJECTED

    def test_passkey_against_secp256r1_key_rejected(self, secp256r1_keypair):
        signature = passkey_sign(secp256r1_keypair, TX_BYTES)
        outcome = verify_transaction_signature(
            TX_BYTES, signature, secp256r1_keypair.public_key
        )
        assert outcome is VerificationOutcome.REJECTED


@pytest.mark.unit
class TestVerificationOutcome:
    def test_from_result(self):
        assert VerificationOutcome.from_result(True) is VerificationOutcome.VERIFIED
        assert VerificationOutcome.from_result(False) is VerificationOutcome.REJECTED
        assert VerificationOutcome.from_result(None) is VerificationOutcome.INDETERMINATE
