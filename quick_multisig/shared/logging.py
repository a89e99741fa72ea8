"""Logging for quick-multisig.

Every module obtains its logger through :func:`get_logger`, which returns a
:class:`ContextAdapter` so proposal ids, signer ids and addresses travel as
structured context. Handlers are attached to the ``quick_multisig`` logger
only, driven by ``QUICK_MULTISIG_LOG_*`` environment variables. Secrets such
as ``suiprivkey1...`` strings are redacted before anything is written.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from quick_multisig.shared.errors import MultisigError, MultisigErrorCode

ENV_PREFIX = "QUICK_MULTISIG"
PACKAGE_LOGGER = "quick_multisig"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _env(name: str, default: str = "") -> str:
    return os.getenv(f"{ENV_PREFIX}_{name}", default)


def _env_flag(name: str) -> bool:
    return _env(name).lower() in ("1", "true", "yes")


@dataclass
class LoggingConfig:
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "human"
    log_to_file: bool = False
    log_to_stdout: bool = False
    log_dir: Path | None = None
    log_filename: str = "multisig.log"
    sanitize_sensitive: bool = True
    preserve_addresses: bool = True

    @classmethod
    def from_environment(cls) -> "LoggingConfig":
        try:
            log_level = LogLevel(_env("LOG_LEVEL", "INFO").upper())
        except ValueError:
            log_level = LogLevel.INFO

        log_dir = _env("LOG_DIR")
        return cls(
            log_level=log_level,
            log_format="json" if _env("LOG_FORMAT").lower() == "json" else "human",
            log_to_file=_env_flag("LOG_FILE"),
            log_to_stdout=_env_flag("LOG_STDOUT"),
            log_dir=Path(log_dir).expanduser() if log_dir else None,
        )

    def resolved_log_dir(self) -> Path:
        return self.log_dir or Path.home() / ".config" / "quick-multisig"


SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"\bsuiprivkey1[02-9ac-hj-np-z]{20,}\b", re.IGNORECASE),
        "[PRIVATE_KEY_REDACTED]",
    ),
    (
        re.compile(
            r"(private[_-]?key['\"]?\s*[:=]\s*['\"]?)((?:0x)?[A-Za-z0-9+/=]{20,})",
            re.IGNORECASE,
        ),
        r"\1[REDACTED]",
    ),
    (
        re.compile(
            r"(secret|mnemonic|seed[_-]?phrase)(['\"]?\s*[:=]\s*['\"]?)([^'\"\n]+)",
            re.IGNORECASE,
        ),
        r"\1\2[REDACTED]",
    ),
]
SECRET_KEYS = ("private_key", "privatekey", "secret", "mnemonic")
SUI_ADDRESS_PATTERN = re.compile(r"\b0x[a-f0-9]{64}\b", re.IGNORECASE)


def sanitize_message(message: str, preserve_addresses: bool = True) -> str:
    if not message:
        return message
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    if not preserve_addresses:
        message = SUI_ADDRESS_PATTERN.sub("[ADDRESS_REDACTED]", message)
    return message


def _sanitize_value(value: Any, preserve_addresses: bool) -> Any:
    if isinstance(value, str):
        return sanitize_message(value, preserve_addresses)
    if isinstance(value, dict):
        return sanitize_dict(value, preserve_addresses)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item, preserve_addresses) for item in value]
    return value


def sanitize_dict(
    data: dict[str, Any], preserve_addresses: bool = True
) -> dict[str, Any]:
    return {
        key: "[REDACTED]"
        if any(secret in key.lower() for secret in SECRET_KEYS)
        else _sanitize_value(value, preserve_addresses)
        for key, value in data.items()
    }


@dataclass(frozen=True)
class UserMessage:
    text: str
    suggestion: str | None = None

    def __str__(self) -> str:
        return f"{self.text} {self.suggestion}" if self.suggestion else self.text


_REBUILD = "Discard the proposal and rebuild it before signing again."

CODE_MESSAGES: dict[MultisigErrorCode, UserMessage] = {
    MultisigErrorCode.INVALID_CONFIG: UserMessage(
        "The multisig configuration is not valid or cannot be changed."
    ),
    MultisigErrorCode.INVALID_THRESHOLD: UserMessage(
        "The threshold is not reachable with the current signers.",
        "Lower the threshold or add signer weight.",
    ),
    MultisigErrorCode.INVALID_SIGNER: UserMessage(
        "The signer definition is not valid or is already part of the multisig."
    ),
    MultisigErrorCode.SIGNER_NOT_RESOLVED: UserMessage(
        "Some signers could not be resolved to a public key.",
        "Connect the missing wallets or provide their public keys.",
    ),
    MultisigErrorCode.WALLET_NOT_CONNECTED: UserMessage(
        "No wallet is connected.", "Connect a wallet and try again."
    ),
    MultisigErrorCode.PUBLIC_KEY_PARSE_ERROR: UserMessage(
        "The provided public key is not valid.",
        "Please verify the key format and key type.",
    ),
    MultisigErrorCode.PROPOSAL_NOT_READY: UserMessage(
        "The proposal cannot accept this action in its current state."
    ),
    MultisigErrorCode.INSUFFICIENT_SIGNATURES: UserMessage(
        "Not enough signatures have been collected yet.",
        "Collect signatures until the threshold is reached.",
    ),
    MultisigErrorCode.SIGNER_MISMATCH: UserMessage(
        "The collected signatures no longer match this proposal.", _REBUILD
    ),
    MultisigErrorCode.EXECUTION_FAILED: UserMessage(
        "The network rejected the transaction."
    ),
}

# Checked in order; first match wins.
PATTERN_MESSAGES: list[tuple[str, UserMessage]] = [
    ("does not match any signer", UserMessage(
        "The connected wallet is not a signer of this multisig.",
        "Connect a wallet that belongs to the signer set.",
    )),
    ("different tx bytes|address mismatch|pubkey mismatch|does not match signer",
     CODE_MESSAGES[MultisigErrorCode.SIGNER_MISMATCH]),
    ("signed weight|not enough signatures|no signatures collected",
     CODE_MESSAGES[MultisigErrorCode.INSUFFICIENT_SIGNATURES]),
    ("threshold", CODE_MESSAGES[MultisigErrorCode.INVALID_THRESHOLD]),
    ("already added", UserMessage("This signer is already part of the multisig.")),
    ("fixed mode", UserMessage("This multisig configuration cannot be changed.")),
    ("no gas coin", UserMessage(
        "The multisig address has no SUI to pay for gas.",
        "Fund the multisig address and try again.",
    )),
    ("timeout|timed out", UserMessage(
        "Connection timed out. The node may be slow or unavailable.",
        "Try again later or check your network connection.",
    )),
    ("connection refused|cannot connect|connection error", UserMessage(
        "Unable to connect to the node.",
        "Check your internet connection and try again.",
    )),
    ("invalid.*key|key.*invalid|parse public key",
     CODE_MESSAGES[MultisigErrorCode.PUBLIC_KEY_PARSE_ERROR]),
    ("invalid.*address|address.*invalid", UserMessage(
        "The address provided is not valid.",
        "Sui addresses start with 0x followed by hex digits.",
    )),
    ("failed local verification|signature.*invalid|invalid.*signature",
     UserMessage("Signature verification failed.", _REBUILD)),
    ("execution failed", CODE_MESSAGES[MultisigErrorCode.EXECUTION_FAILED]),
]

UNKNOWN_ERROR = UserMessage("An unexpected error occurred.")


def user_message_for(error: Exception | str) -> UserMessage:
    """Map an error to a message suitable for an end user.

    Message patterns are tried first since they are more specific than an
    error code; a :class:`MultisigError` with no matching pattern falls back
    to the message registered for its code.
    """
    text = str(error).lower()
    for pattern, message in PATTERN_MESSAGES:
        if re.search(pattern, text):
            return message
    if isinstance(error, MultisigError):
        return CODE_MESSAGES.get(error.code, UNKNOWN_ERROR)
    return UNKNOWN_ERROR


def get_user_friendly_error(error: Exception | str) -> tuple[str, str | None]:
    message = user_message_for(error)
    return message.text, message.suggestion


def format_error_for_user(error: Exception | str) -> str:
    return str(user_message_for(error))


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with adapter context under ``context``."""

    def __init__(self, sanitize: bool = True, preserve_addresses: bool = True):
        super().__init__()
        self.sanitize = sanitize
        self.preserve_addresses = preserve_addresses

    def _clean(self, text: str) -> str:
        return sanitize_message(text, self.preserve_addresses) if self.sanitize else text

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._clean(record.getMessage()),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            entry["context"] = (
                sanitize_dict(context, self.preserve_addresses)
                if self.sanitize
                else context
            )

        if record.exc_info:
            entry["exception"] = self._clean(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    def __init__(self, sanitize: bool = True, preserve_addresses: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.sanitize = sanitize
        self.preserve_addresses = preserve_addresses

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return sanitize_message(line, self.preserve_addresses) if self.sanitize else line


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that merges its bound context into ``extra["context"]``."""

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        super().__init__(logger, context or {})

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        if self.extra:
            extra = {**extra, "context": {**self.extra, **extra.get("context", {})}}
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextAdapter":
        return ContextAdapter(self.logger, {**self.extra, **context})


_logging_initialized = False


def _make_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.log_format == "json":
        return StructuredFormatter(config.sanitize_sensitive, config.preserve_addresses)
    return HumanReadableFormatter(config.sanitize_sensitive, config.preserve_addresses)


def setup_logging(config: LoggingConfig | None = None, force: bool = False) -> None:
    """Attach handlers to the ``quick_multisig`` logger hierarchy once."""
    global _logging_initialized

    if _logging_initialized and not force:
        return

    config = config or LoggingConfig.from_environment()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, config.log_level.value))
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = []
    if config.log_to_file:
        log_dir = config.resolved_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / config.log_filename, mode="a", encoding="utf-8")
        )
    if config.log_to_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setFormatter(_make_formatter(config))
        package_logger.addHandler(handler)

    _logging_initialized = True


def get_logger(name: str, context: dict[str, Any] | None = None) -> ContextAdapter:
    if not _logging_initialized:
        setup_logging()
    return ContextAdapter(logging.getLogger(name), context)


__all__ = [
    "LogLevel",
    "LoggingConfig",
    "ContextAdapter",
    "StructuredFormatter",
    "HumanReadableFormatter",
    "UserMessage",
    "sanitize_message",
    "sanitize_dict",
    "user_message_for",
    "get_user_friendly_error",
    "format_error_for_user",
    "setup_logging",
    "get_logger",
]
