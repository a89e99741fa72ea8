"""Typed errors for multisig configuration, resolution, proposals and execution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

REBUILD_HINT = "Reset the proposal and rebuild it before collecting signatures again."


class MultisigErrorCode(Enum):
    # Config errors
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_THRESHOLD = "INVALID_THRESHOLD"
    INVALID_SIGNER = "INVALID_SIGNER"

    # Resolution errors
    SIGNER_NOT_RESOLVED = "SIGNER_NOT_RESOLVED"
    WALLET_NOT_CONNECTED = "WALLET_NOT_CONNECTED"
    PUBLIC_KEY_PARSE_ERROR = "PUBLIC_KEY_PARSE_ERROR"

    # Proposal errors
    PROPOSAL_NOT_READY = "PROPOSAL_NOT_READY"
    INSUFFICIENT_SIGNATURES = "INSUFFICIENT_SIGNATURES"
    SIGNER_MISMATCH = "SIGNER_MISMATCH"

    # Execution errors
    EXECUTION_FAILED = "EXECUTION_FAILED"


@dataclass
class MultisigError(Exception):
    code: MultisigErrorCode
    message: str
    cause: Exception | None = None
    rebuild_required: bool = False

    def __str__(self) -> str:
        return self.message


class InvalidConfigError(MultisigError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(MultisigErrorCode.INVALID_CONFIG, message, cause)


class InvalidThresholdError(MultisigError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(MultisigErrorCode.INVALID_THRESHOLD, message, cause)


class InvalidSignerError(MultisigError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(MultisigErrorCode.INVALID_SIGNER, message, cause)


class PublicKeyParseError(MultisigError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(MultisigErrorCode.PUBLIC_KEY_PARSE_ERROR, message, cause)


class SignerMismatchError(MultisigError):
    """A signature, signer or address does not belong where it claims to.

    Divergence cases (wallet bytes differ, address drift, signature/key
    mismatch) set ``rebuild_required`` so callers discard the proposal
    instead of retrying in place.
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        rebuild_required: bool = False,
    ):
        super().__init__(
            MultisigErrorCode.SIGNER_MISMATCH, message, cause, rebuild_required
        )


class InsufficientSignaturesError(MultisigError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(MultisigErrorCode.INSUFFICIENT_SIGNATURES, message, cause)


class ExecutionFailedError(MultisigError):
    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        rebuild_required: bool = False,
    ):
        super().__init__(
            MultisigErrorCode.EXECUTION_FAILED, message, cause, rebuild_required
        )


__all__ = [
    "REBUILD_HINT",
    "MultisigErrorCode",
    "MultisigError",
    "InvalidConfigError",
    "InvalidThresholdError",
    "InvalidSignerError",
    "PublicKeyParseError",
    "SignerMismatchError",
    "InsufficientSignaturesError",
    "ExecutionFailedError",
]
