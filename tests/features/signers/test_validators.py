import pytest

from quick_multisig.crypto.keys import SignerKeyType
from quick_multisig.features.signers.models import (
    PasskeySigner,
    PublicKeySigner,
    WalletSigner,
    ZkLoginSigner,
)
from quick_multisig.features.signers.validators import (
    calculate_total_weight,
    validate_signer,
)

ADDRESS = "0x" + "3c" * 32


@pytest.mark.unit
class TestValidateSigner:
    def test_valid_signers(self, ed25519_keypair):
        signers = [
            PasskeySigner(),
            PasskeySigner(weight=2, address=ADDRESS),
            ZkLoginSigner(address=ADDRESS),
            ZkLoginSigner(address_seed="12345", issuer="https://accounts.google.com"),
            WalletSigner(address=ADDRESS),
            PublicKeySigner(
                public_key=ed25519_keypair.public_key.to_base64(),
                key_type=SignerKeyType.ED25519,
            ),
        ]
        for index, signer in enumerate(signers):
            assert validate_signer(signer, index) == []

    def test_weight_errors_are_prefixed(self):
        errors = validate_signer(WalletSigner(address=ADDRESS, weight=0), 3)
        assert errors == ["Signer[3]: Weight must be a positive integer (got 0)"]

    def test_bad_optional_address(self):
        errors = validate_signer(PasskeySigner(address="nope"), 0)
        assert errors == ["Signer[0]: Address must start with '0x'"]

    def test_zklogin_needs_seed_and_issuer_together(self):
        errors = validate_signer(ZkLoginSigner(address_seed="1"), 0)
        assert "needs both addressSeed and issuer" in errors[0]

    def test_zklogin_seed_must_be_decimal(self):
        errors = validate_signer(
            ZkLoginSigner(address_seed="0xff", issuer="https://accounts.google.com"), 0
        )
        assert "decimal integer" in errors[0]

    def test_wallet_requires_address(self):
        errors = validate_signer(WalletSigner(address=""), 1)
        assert errors == ["Signer[1]: Wallet signer requires a valid address"]

    def test_public_key_requires_key_and_type(self):
        errors = validate_signer(PublicKeySigner(public_key="", key_type=""), 0)
        assert len(errors) == 2
        assert "publicKey" in errors[0]
        assert "keyType" in errors[1]

    def test_public_key_invalid_key_type(self):
        errors = validate_signer(PublicKeySigner(public_key="AAAA", key_type="bls"), 0)
        assert errors == [
            "Signer[0]: Invalid keyType 'bls'. Must be one of "
            "ed25519, secp256k1, secp256r1, passkey, zklogin"
        ]

    def test_collects_multiple_problems(self):
        errors = validate_signer(
            PublicKeySigner(public_key="AAAA", key_type="bls", weight=-1, address="0xzz"), 4
        )
        assert len(errors) == 3
        assert all(error.startswith("Signer[4]: ") for error in errors)


@pytest.mark.unit
class TestCalculateTotalWeight:
    def test_sums_weights(self):
        signers = [WalletSigner(address=ADDRESS, weight=2), PasskeySigner(weight=3)]
        assert calculate_total_weight(signers) == 5

    def test_ignores_invalid_weights(self):
        signers = [WalletSigner(address=ADDRESS, weight=2), PasskeySigner(weight=0)]
        assert calculate_total_weight(signers) == 2

    def test_empty(self):
        assert calculate_total_weight([]) == 0
