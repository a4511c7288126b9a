"""Jupiter swap API client.

Two calls per swap: a quote for an exact input amount, then a serialized,
unsigned transaction built from that quote for the wallet's public key.

Reference:
- Quote: https://dev.jup.ag/docs/api/swap-api/quote
- Swap: https://dev.jup.ag/docs/api/swap-api/swap
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from swapcore.errors import ExecutionErrorKind, ExecutionFailure

from jupiter_adapter.rate_limiter import RateLimiter, RateLimitConfig


logger = logging.getLogger(__name__)

DEFAULT_SWAP_API_URL = "https://api.jup.ag/swap/v1"
DEFAULT_SLIPPAGE_BPS = 100
DEFAULT_MAX_PRIORITY_FEE_LAMPORTS = 1_000_000
DEFAULT_PRIORITY_LEVEL = "veryHigh"


@dataclass(frozen=True)
class Quote:
    """Quote for swapping an exact input amount.

    Amounts are in the tokens' smallest on-chain units.
    """
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    slippage_bps: int
    raw: dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class SwapTransaction:
    """Unsigned swap transaction returned by the swap API."""
    transaction: bytes = field(repr=False)
    last_valid_block_height: Optional[int] = None
    prioritization_fee_lamports: Optional[int] = None


@dataclass
class JupiterSwapClient:
    """Quote and transaction-building client for the Jupiter swap API.

    Errors are raised as ``ExecutionFailure``:
    - transport errors and 5xx responses -> ``network``
    - 4xx responses and unusable quotes -> ``quote_rejected``
    - a non-null ``simulationError`` on the built transaction -> ``simulation_failed``
    """

    http: Optional[httpx.AsyncClient] = None
    base_url: str = DEFAULT_SWAP_API_URL
    api_key: Optional[str] = None
    timeout: float = 30.0
    max_priority_fee_lamports: int = DEFAULT_MAX_PRIORITY_FEE_LAMPORTS
    priority_level: str = DEFAULT_PRIORITY_LEVEL
    rate_limit_config: RateLimitConfig = field(default_factory=RateLimitConfig)

    _rate_limiter: RateLimiter = field(default=None, init=False, repr=False)
    _owns_http: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        """Create the HTTP client when none was injected."""
        if self.http is None:
            self.http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True
        self._rate_limiter = RateLimiter(config=self.rate_limit_config)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self.http.aclose()

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> Quote:
        """Request a quote for an exact input amount.

        Args:
            input_mint: Mint of the token being spent
            output_mint: Mint of the token being received
            amount: Input amount in smallest units
            slippage_bps: Slippage tolerance in basis points (100 = 1%)

        Returns:
            Parsed Quote

        Raises:
            ExecutionFailure: On transport error, rejection or an unusable quote
        """
        if amount <= 0:
            raise ExecutionFailure(
                ExecutionErrorKind.QUOTE_REJECTED, f"input amount must be positive, got {amount}",
            )

        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
            "restrictIntermediateTokens": "true",
        }
        logger.debug(f"Requesting quote {input_mint[:8]}... -> {output_mint[:8]}... amount={amount}")
        data = await self._request("GET", "/quote", "get_quote", params=params)

        try:
            out_amount = int(data["outAmount"])
            in_amount = int(data.get("inAmount", amount))
        except (KeyError, TypeError, ValueError) as e:
            raise ExecutionFailure(
                ExecutionErrorKind.QUOTE_REJECTED, "quote response has no usable outAmount",
            ) from e
        if out_amount <= 0:
            raise ExecutionFailure(ExecutionErrorKind.QUOTE_REJECTED, "quote outAmount is zero")

        return Quote(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=in_amount,
            out_amount=out_amount,
            slippage_bps=slippage_bps,
            raw=data,
        )

    async def build_swap(self, quote: Quote, user_public_key: str) -> SwapTransaction:
        """Build the unsigned swap transaction for a quote.

        Uses dynamic compute unit limit, dynamic slippage and a capped
        priority fee.

        Args:
            quote: Quote from ``get_quote``
            user_public_key: Base58 public key of the signing wallet

        Returns:
            SwapTransaction with the deserialized-ready transaction bytes

        Raises:
            ExecutionFailure: On transport error, rejection or simulation failure
        """
        body = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "dynamicComputeUnitLimit": True,
            "dynamicSlippage": True,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": self.max_priority_fee_lamports,
                    "global": False,
                    "priorityLevel": self.priority_level,
                },
            },
        }
        data = await self._request("POST", "/swap", "build_swap", json_body=body)

        simulation_error = data.get("simulationError")
        if simulation_error is not None:
            raise ExecutionFailure(
                ExecutionErrorKind.SIMULATION_FAILED, f"swap simulation failed: {simulation_error}",
            )

        try:
            transaction = base64.b64decode(data["swapTransaction"], validate=True)
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise ExecutionFailure(
                ExecutionErrorKind.QUOTE_REJECTED, "swap response has no valid swapTransaction",
            ) from e

        return SwapTransaction(
            transaction=transaction,
            last_valid_block_height=data.get("lastValidBlockHeight"),
            prioritization_fee_lamports=data.get("prioritizationFeeLamports"),
        )

    async def _request(
        self,
        method: str,
        path: str,
        op: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict:
        """Send one request and return the decoded JSON object.

        Raises:
            ExecutionFailure: ``network`` for transport/5xx/429, ``quote_rejected`` for 4xx
        """
        await self._rate_limiter.acquire()
        headers = {"x-api-key": self.api_key} if self.api_key else None

        try:
            response = await self.http.request(
                method, f"{self.base_url}{path}", params=params, json=json_body, headers=headers,
            )
        except httpx.HTTPError as e:
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{op} request failed: {e}") from e

        if response.status_code == 429:
            self._rate_limiter.record_rate_limit_hit()
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{op} rate limited (429)")
        self._rate_limiter.record_success()

        if response.status_code >= 500:
            raise ExecutionFailure(
                ExecutionErrorKind.NETWORK, f"{op} returned {response.status_code}",
            )
        if response.status_code >= 400:
            raise ExecutionFailure(
                ExecutionErrorKind.QUOTE_REJECTED,
                f"{op} returned {response.status_code}: {response.text[:200]}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{op} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ExecutionFailure(ExecutionErrorKind.NETWORK, f"{op} returned unexpected payload")
        return data
