"""Sui fullnode JSON-RPC chain client.

Requests follow JSON-RPC 2.0 conventions:
    - success: {"jsonrpc": "2.0", "id": n, "result": ...}
    - failure: {"jsonrpc": "2.0", "id": n, "error": {"code": ..., "message": ...}}

Reads are retried by the underlying :class:`NetworkClient`; transaction
submission is sent exactly once.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import itertools
from typing import Any

from quick_multisig.shared.logging import get_logger
from quick_multisig.shared.network import (
    NetworkClient,
    RetryConfig,
    TimeoutConfig,
)
from quick_multisig.shared.protocols import ExecuteResult, TransactionRequest

logger = get_logger(__name__)

SUI_COIN_TYPE = "0x2::sui::SUI"

NETWORK_URLS: dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

DEFAULT_NETWORK = "testnet"


class ChainError(Exception):
    def __init__(self, message: str, code: int | None = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        return self.message


def fullnode_url(network: str) -> str:
    try:
        return NETWORK_URLS[network]
    except KeyError:
        raise ValueError(
            f"Unknown network '{network}'. Must be one of: {', '.join(NETWORK_URLS)}"
        ) from None


class SuiRpcClient:
    """Chain client over the Sui fullnode JSON-RPC API."""

    def __init__(
        self,
        network: str = DEFAULT_NETWORK,
        node_url: str | None = None,
        timeout_config: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
        network_client: NetworkClient | None = None,
    ):
        self.network = network
        self.node_url = node_url or fullnode_url(network)
        self._network_client = network_client or NetworkClient(
            node_url=self.node_url,
            timeout_config=timeout_config,
            retry_config=retry_config,
        )
        self._request_ids = itertools.count(1)

    def call(self, method: str, params: list[Any], retry: bool = True) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        Raises:
            NetworkError: on transport failures.
            ChainError: when the node answers with a JSON-RPC error.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        response = self._network_client.post_json(payload, context=method, retry=retry)

        error = response.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise ChainError(
                    f"{method} failed: {error.get('message', 'unknown error')}",
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise ChainError(f"{method} failed: {error}")

        if "result" not in response:
            raise ChainError(f"{method} returned no result")
        return response["result"]

    async def _call(self, method: str, params: list[Any], retry: bool = True) -> Any:
        return await asyncio.to_thread(self.call, method, params, retry)

    async def get_gas_coin(self, owner: str) -> dict[str, Any] | None:
        result = await self._call("suix_getCoins", [owner, SUI_COIN_TYPE, None, 1])
        coins = (result or {}).get("data") or []
        return coins[0] if coins else None

    async def get_reference_gas_price(self) -> int:
        result = await self._call("suix_getReferenceGasPrice", [])
        return int(result)

    async def build(self, transaction: TransactionRequest, sender: str) -> bytes:
        gas_coin = await self.get_gas_coin(sender)
        if gas_coin is None:
            raise ChainError(
                f"No gas coin found for {sender}. Please fund the address first."
            )

        result = await self._call(transaction.method, [sender, *transaction.params])
        tx_bytes = (result or {}).get("txBytes")
        if not tx_bytes:
            raise ChainError(f"{transaction.method} returned no txBytes")

        try:
            decoded = base64.b64decode(tx_bytes, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ChainError(f"{transaction.method} returned malformed txBytes") from e

        logger.info(
            "Built %s transaction for %s (%d bytes)",
            transaction.method,
            sender,
            len(decoded),
        )
        return decoded

    async def execute(self, tx_bytes: bytes, signature: str) -> ExecuteResult:
        params = [
            base64.b64encode(tx_bytes).decode("ascii"),
            [signature],
            {"showEffects": True, "showEvents": True},
            "WaitForLocalExecution",
        ]
        result = await self._call("sui_executeTransactionBlock", params, retry=False)
        return parse_execute_result(result)


def parse_execute_result(result: dict[str, Any] | None) -> ExecuteResult:
    """Turn an ``sui_executeTransactionBlock`` result into :class:`ExecuteResult`.

    Raises:
        ChainError: if the digest is missing or the effects report failure.
    """
    if not isinstance(result, dict) or not result.get("digest"):
        raise ChainError("Execution response carried no transaction digest")

    effects = result.get("effects")
    status = (effects or {}).get("status", {})
    if status.get("status") == "failure":
        raise ChainError(
            f"Transaction {result['digest']} failed on chain: "
            f"{status.get('error', 'unknown error')}",
            data=effects,
        )

    return ExecuteResult(
        digest=result["digest"],
        effects=effects,
        events=result.get("events") or [],
    )
