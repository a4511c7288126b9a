"""Solana JSON-RPC client for sending and confirming signed transactions.

Reference:
- sendTransaction: https://solana.com/docs/rpc/http/sendtransaction
- getSignatureStatuses: https://solana.com/docs/rpc/http/getsignaturestatuses
- getBlockHeight: https://solana.com/docs/rpc/http/getblockheight
"""

import asyncio
import base64
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from swapcore.errors import ExecutionErrorKind, ExecutionFailure


logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}/"

# Commitment levels in increasing order of finality
COMMITMENT_ORDER = ("processed", "confirmed", "finalized")


def transaction_url(signature: str) -> str:
    """Explorer link for a transaction signature."""
    return SOLSCAN_TX_URL.format(signature=signature)


@dataclass
class SolanaRpcClient:
    """Minimal Solana JSON-RPC client.

    Example:
        rpc = SolanaRpcClient(rpc_url="https://mainnet.helius-rpc.com/?api-key=...")
        signature = await rpc.send_raw_transaction(signed_bytes)
        await rpc.confirm_transaction(signature, last_valid_block_height=height)
    """

    rpc_url: str = DEFAULT_RPC_URL
    http: Optional[httpx.AsyncClient] = None
    timeout: float = 30.0
    commitment: str = "processed"
    max_retries: int = 2
    poll_interval: float = 1.0
    confirm_timeout: float = 60.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    _owns_http: bool = field(default=False, init=False, repr=False)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def __post_init__(self):
        """Create the HTTP client when none was injected."""
        if self.commitment not in COMMITMENT_ORDER:
            raise ValueError(f"Unknown commitment '{self.commitment}'")
        if self.http is None:
            self.http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self.http.aclose()

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """Submit a signed transaction without preflight simulation.

        Args:
            raw_transaction: Serialized signed transaction

        Returns:
            Transaction signature (base58)

        Raises:
            ExecutionFailure: ``network`` on transport error, ``send_failed`` if rejected
        """
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        options = {"encoding": "base64", "skipPreflight": True, "maxRetries": self.max_retries}
        try:
            result = await self._call("sendTransaction", [encoded, options])
        except _RpcError as e:
            raise ExecutionFailure(ExecutionErrorKind.SEND_FAILED, f"sendTransaction rejected: {e}") from e

        if not isinstance(result, str) or not result:
            raise ExecutionFailure(ExecutionErrorKind.SEND_FAILED, "sendTransaction returned no signature")
        logger.info(f"Transaction sent: {transaction_url(result)}")
        return result

    async def confirm_transaction(
        self,
        signature: str,
        last_valid_block_height: Optional[int] = None,
    ) -> None:
        """Poll until the transaction reaches the configured commitment.

        Args:
            signature: Transaction signature
            last_valid_block_height: Stop polling once the chain passes this
                height (blockhash expired)

        Raises:
            ExecutionFailure: ``confirm_failed`` if the transaction errored,
                expired or did not confirm in time
        """
        deadline = self.clock() + self.confirm_timeout
        target = COMMITMENT_ORDER.index(self.commitment)

        while True:
            status = await self._signature_status(signature)
            if status is not None:
                if status.get("err") is not None:
                    raise ExecutionFailure(
                        ExecutionErrorKind.CONFIRM_FAILED,
                        f"transaction failed on chain: {status['err']}",
                        transaction_ref=signature,
                    )
                reached = status.get("confirmationStatus")
                if reached in COMMITMENT_ORDER and COMMITMENT_ORDER.index(reached) >= target:
                    logger.debug(f"Transaction {signature[:16]}... reached {reached}")
                    return

            if last_valid_block_height is not None:
                height = await self._block_height()
                if height is not None and height > last_valid_block_height:
                    raise ExecutionFailure(
                        ExecutionErrorKind.CONFIRM_FAILED,
                        f"blockhash expired at height {height}",
                        transaction_ref=signature,
                    )

            if self.clock() >= deadline:
                raise ExecutionFailure(
                    ExecutionErrorKind.CONFIRM_FAILED,
                    f"not confirmed within {self.confirm_timeout}s",
                    transaction_ref=signature,
                )
            await self.sleep(self.poll_interval)

    async def _signature_status(self, signature: str) -> Optional[dict]:
        """Current status of one signature, or None if not yet seen.

        Transport errors while polling are retried until the deadline.
        """
        try:
            result = await self._call(
                "getSignatureStatuses", [[signature], {"searchTransactionHistory": False}],
            )
        except (ExecutionFailure, _RpcError) as e:
            logger.warning(f"Signature status poll failed: {e}")
            return None
        values = result.get("value") if isinstance(result, dict) else None
        # Anything but a list holding a status object counts as not yet seen
        if not isinstance(values, list) or not values or not isinstance(values[0], dict):
            return None
        return values[0]

    async def _block_height(self) -> Optional[int]:
        try:
            result = await self._call("getBlockHeight", [{"commitment": self.commitment}])
        except (ExecutionFailure, _RpcError) as e:
            logger.warning(f"Block height poll failed: {e}")
            return None
        return result if isinstance(result, int) else None

    async def _call(self, method: str, params: list) -> Any:
        """Perform one JSON-RPC call and return its ``result``.

        Raises:
            ExecutionFailure: ``network`` on transport or HTTP error
            _RpcError: If the node answered with a JSON-RPC error object
        """
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self.http.post(self.rpc_url, json=body)
        except httpx.HTTPError as e:
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{method} request failed: {e}") from e

        if response.status_code >= 400:
            raise ExecutionFailure(
                ExecutionErrorKind.NETWORK, f"{method} returned HTTP {response.status_code}",
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{method} returned invalid JSON") from e

        if payload.get("error") is not None:
            error = payload["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise _RpcError(str(message))
        return payload.get("result")


class _RpcError(Exception):
    """JSON-RPC error object returned by the node."""
