"""Shared utilities for quick-multisig."""

from quick_multisig.shared.errors import (
    MultisigError,
    MultisigErrorCode,
)
from quick_multisig.shared.logging import (
    ContextAdapter,
    LoggingConfig,
    LogLevel,
    format_error_for_user,
    get_logger,
    get_user_friendly_error,
    sanitize_dict,
    sanitize_message,
    setup_logging,
)
from quick_multisig.shared.network import (
    NetworkClient,
    NetworkError,
    NetworkErrorType,
    RetryConfig,
    TimeoutConfig,
)
from quick_multisig.shared.storage import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
)
from quick_multisig.shared.validation import (
    AddressValidator,
    ThresholdValidator,
    ValidationResult,
    WeightValidator,
)

__all__ = [
    "MultisigError",
    "MultisigErrorCode",
    "NetworkClient",
    "NetworkError",
    "NetworkErrorType",
    "RetryConfig",
    "TimeoutConfig",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "AddressValidator",
    "ThresholdValidator",
    "ValidationResult",
    "WeightValidator",
    "ContextAdapter",
    "LoggingConfig",
    "LogLevel",
    "format_error_for_user",
    "get_logger",
    "get_user_friendly_error",
    "sanitize_dict",
    "sanitize_message",
    "setup_logging",
]
