"""HTTP transport for fullnode JSON-RPC with timeout handling and retry logic."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import requests
from requests.exceptions import ConnectionError, HTTPError, Timeout

from quick_multisig.shared.logging import get_logger

logger = get_logger(__name__)


class NetworkErrorType(Enum):
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_ERROR = "http_error"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


@dataclass
class NetworkError(Exception):
    error_type: NetworkErrorType
    message: str
    original_error: Exception | None = None
    status_code: int | None = None
    response_text: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class TimeoutConfig:
    connect_timeout: float = 5.0
    read_timeout: float = 30.0

    @property
    def request_timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    retryable_status_codes: set[int] = field(
        default_factory=lambda: {408, 429, 500, 502, 503, 504}
    )

    def calculate_delay(self, attempt: int) -> float:
        return min(self.base_delay * self.exponential_base**attempt, self.max_delay)


DEFAULT_TIMEOUT_CONFIG = TimeoutConfig()
DEFAULT_RETRY_CONFIG = RetryConfig()

# Order matters: Timeout subclasses ConnectionError for connect timeouts.
_ERROR_TYPES: list[tuple[type[Exception], NetworkErrorType]] = [
    (Timeout, NetworkErrorType.TIMEOUT),
    (ConnectionError, NetworkErrorType.CONNECTION_ERROR),
    (HTTPError, NetworkErrorType.HTTP_ERROR),
    (ValueError, NetworkErrorType.INVALID_RESPONSE),
]


def classify_error(error: Exception) -> NetworkErrorType:
    for error_class, error_type in _ERROR_TYPES:
        if isinstance(error, error_class):
            return error_type
    return NetworkErrorType.UNKNOWN


def _status_of(error: Exception) -> tuple[int | None, str | None]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None), getattr(response, "text", None)


def create_network_error(
    error: Exception, node_url: str, context: str = ""
) -> NetworkError:
    error_type = classify_error(error)
    status_code, response_text = (
        _status_of(error) if error_type is NetworkErrorType.HTTP_ERROR else (None, None)
    )

    descriptions = {
        NetworkErrorType.TIMEOUT: f"Connection timeout. Node may be unavailable: {node_url}",
        NetworkErrorType.CONNECTION_ERROR: (
            f"Cannot connect to node: {node_url}. Check your network connection."
        ),
        NetworkErrorType.HTTP_ERROR: (
            f"HTTP error {status_code}: {response_text or 'Unknown error'}"
        ),
        NetworkErrorType.INVALID_RESPONSE: "Node returned a response that is not valid JSON",
        NetworkErrorType.UNKNOWN: f"Network error: {error}",
    }
    prefix = f"{context}: " if context else ""

    return NetworkError(
        error_type=error_type,
        message=prefix + descriptions[error_type],
        original_error=error,
        status_code=status_code,
        response_text=response_text,
    )


def should_retry(error: Exception, retry_config: RetryConfig) -> bool:
    error_type = classify_error(error)
    if error_type in (NetworkErrorType.TIMEOUT, NetworkErrorType.CONNECTION_ERROR):
        return True
    if error_type is NetworkErrorType.HTTP_ERROR:
        return _status_of(error)[0] in retry_config.retryable_status_codes
    return False


class NetworkClient:
    """JSON-over-HTTP POST client bound to one fullnode URL."""

    def __init__(
        self,
        node_url: str,
        timeout_config: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
        on_retry: Callable[[int, Exception, float], None] | None = None,
        session: requests.Session | None = None,
    ):
        self.node_url = node_url.rstrip("/")
        self.timeout_config = timeout_config or DEFAULT_TIMEOUT_CONFIG
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.on_retry = on_retry
        self.session = session or requests.Session()
        self._logger = logger.with_context(node_url=self.node_url)

    def _send(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = self.session.post(
            self.node_url, json=payload, timeout=self.timeout_config.request_timeout
        )
        response.raise_for_status()
        return response.json()

    def post_json(
        self,
        payload: dict[str, Any],
        context: str = "",
        retry: bool = True,
    ) -> dict[str, Any]:
        """POST a JSON body to the node root and return the decoded response.

        ``retry=False`` sends exactly once; use it for non-idempotent calls
        such as transaction submission.
        """
        attempts = self.retry_config.max_retries + 1 if retry else 1
        attempt = 0
        while True:
            try:
                return self._send(payload)
            except (requests.RequestException, ValueError) as e:
                attempt += 1
                if attempt >= attempts or not should_retry(e, self.retry_config):
                    raise create_network_error(e, self.node_url, context) from e

                delay = self.retry_config.calculate_delay(attempt - 1)
                self._logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    context or "request",
                    attempt,
                    attempts,
                    delay,
                    e,
                )
                if self.on_retry:
                    self.on_retry(attempt, e, delay)
                time.sleep(delay)


__all__ = [
    "NetworkErrorType",
    "NetworkError",
    "TimeoutConfig",
    "RetryConfig",
    "NetworkClient",
    "classify_error",
    "create_network_error",
    "should_retry",
]
