"""quick-multisig - weighted threshold multisig coordination for Sui.

This package is organized into feature-based modules:
- crypto: Public keys, addresses, serialized signatures and local keypairs
- features.signers: Signer definitions and resolution
- features.account: Multisig address derivation
- features.proposal: Signature collection and execution
- features.multisig: Configuration and the multisig coordinator
- features.wallet: Local keypair credential service
- shared: Errors, logging, validation, storage, networking and chain client
"""

from quick_multisig.shared.errors import (
    ExecutionFailedError,
    InsufficientSignaturesError,
    InvalidConfigError,
    InvalidSignerError,
    InvalidThresholdError,
    MultisigError,
    MultisigErrorCode,
    PublicKeyParseError,
    SignerMismatchError,
)
from quick_multisig.crypto import (
    Ed25519Keypair,
    PublicKey,
    Secp256k1Keypair,
    Secp256r1Keypair,
    SignerKeyType,
)
from quick_multisig.features.multisig import (
    MultisigConfig,
    MultisigCoordinator,
    MultisigMode,
    MultisigState,
)
from quick_multisig.features.proposal import ProposalSession, ProposalState
from quick_multisig.features.signers import (
    PasskeySigner,
    PublicKeySigner,
    ResolvedSigner,
    ResolverContext,
    SignerResolver,
    WalletSigner,
    ZkLoginSigner,
)
from quick_multisig.features.wallet import LocalCredentialService
from quick_multisig.shared.chain import ChainError, SuiRpcClient
from quick_multisig.shared.protocols import (
    ExecuteResult,
    GroupMember,
    TransactionRequest,
)
from quick_multisig.shared.storage import JsonFileStore, MemoryStore

__version__ = "0.1.0"
__all__ = [
    "MultisigError",
    "MultisigErrorCode",
    "InvalidConfigError",
    "InvalidThresholdError",
    "InvalidSignerError",
    "PublicKeyParseError",
    "SignerMismatchError",
    "InsufficientSignaturesError",
    "ExecutionFailedError",
    "Ed25519Keypair",
    "Secp256k1Keypair",
    "Secp256r1Keypair",
    "PublicKey",
    "SignerKeyType",
    "MultisigConfig",
    "MultisigCoordinator",
    "MultisigMode",
    "MultisigState",
    "ProposalSession",
    "ProposalState",
    "PasskeySigner",
    "PublicKeySigner",
    "ResolvedSigner",
    "ResolverContext",
    "SignerResolver",
    "WalletSigner",
    "ZkLoginSigner",
    "LocalCredentialService",
    "ChainError",
    "SuiRpcClient",
    "ExecuteResult",
    "GroupMember",
    "TransactionRequest",
    "JsonFileStore",
    "MemoryStore",
]
