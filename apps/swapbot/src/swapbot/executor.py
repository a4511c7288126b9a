"""Swap executor turning trade intents into on-chain swaps.

The executor is the bridge between the pure grid logic (swapcore) and the
venue. One call executes exactly one intent: quote, build, sign, send,
confirm. It never retries; a failed crossing is retried by the controller on
the next tick's diff.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal, ROUND_FLOOR
from typing import Optional
from uuid import uuid4

from jupiter_adapter.rpc_client import SolanaRpcClient, transaction_url
from jupiter_adapter.signer import Signer
from jupiter_adapter.swap_client import DEFAULT_SLIPPAGE_BPS, JupiterSwapClient
from swapcore.errors import ExecutionErrorKind, ExecutionFailure
from swapcore.intents import TradeIntent


logger = logging.getLogger(__name__)


@dataclass
class SwapResult:
    """Result of one swap attempt."""

    success: bool
    executed_output_amount: Optional[float] = None
    transaction_ref: Optional[str] = None
    error_kind: Optional[ExecutionErrorKind] = None
    error: Optional[str] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC)

    @property
    def explorer_url(self) -> Optional[str]:
        """Explorer link for on-chain transactions."""
        if self.transaction_ref is None or self.transaction_ref.startswith("shadow-"):
            return None
        return transaction_url(self.transaction_ref)


def to_smallest_units(amount: float, decimals: int) -> int:
    """Convert a token amount to on-chain units, rounding down."""
    scaled = Decimal(str(amount)).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


class SwapExecutor:
    """Executes trade intents against Jupiter and Solana.

    In shadow mode, logs intents and reports the expected output as filled
    without touching the venue.

    Example:
        executor = SwapExecutor(swap_client, rpc_client, signer)
        result = await executor.execute(intent)
        if result.success:
            print(f"Swapped: {result.explorer_url}")
    """

    def __init__(
        self,
        swap_client: Optional[JupiterSwapClient] = None,
        rpc_client: Optional[SolanaRpcClient] = None,
        signer: Optional[Signer] = None,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        shadow_mode: bool = False,
    ):
        """Initialize executor.

        Args:
            swap_client: Jupiter quote/swap client (live mode).
            rpc_client: Solana RPC client (live mode).
            signer: Wallet signer (live mode).
            slippage_bps: Slippage tolerance passed to the quote.
            shadow_mode: If True, log intents without executing.
        """
        if not shadow_mode and (swap_client is None or rpc_client is None or signer is None):
            raise ValueError("Live mode requires a swap client, an RPC client and a signer")
        self._swap_client = swap_client
        self._rpc_client = rpc_client
        self._signer = signer
        self._slippage_bps = slippage_bps
        self._shadow_mode = shadow_mode

    @property
    def shadow_mode(self) -> bool:
        """Whether executor is in shadow mode."""
        return self._shadow_mode

    async def aclose(self) -> None:
        """Close the venue clients."""
        for client in (self._swap_client, self._rpc_client):
            if client is not None:
                await client.aclose()

    async def execute(self, intent: TradeIntent) -> SwapResult:
        """Execute one trade intent.

        Args:
            intent: Intent built for one crossing.

        Returns:
            SwapResult; failures carry ``error_kind`` and, when a transaction
            was already sent, its ``transaction_ref``.
        """
        if self._shadow_mode:
            logger.info(
                f"[SHADOW] Would swap {intent.input_amount:.9f} {intent.input_symbol} -> "
                f"{intent.output_symbol} for grid {intent.grid_id} "
                f"{intent.direction} level={intent.level} intent={intent.intent_id}"
            )
            return SwapResult(
                success=True,
                executed_output_amount=intent.expected_output_amount,
                transaction_ref=f"shadow-{intent.intent_id}-{uuid4().hex[:12]}",
            )

        try:
            return await self._swap(intent)
        except ExecutionFailure as e:
            logger.error(
                f"Swap failed for grid {intent.grid_id} {intent.direction} level={intent.level}: {e}"
            )
            return SwapResult(
                success=False,
                transaction_ref=e.transaction_ref,
                error_kind=e.kind,
                error=str(e),
            )

    async def _swap(self, intent: TradeIntent) -> SwapResult:
        amount = to_smallest_units(intent.input_amount, intent.input_decimals)
        quote = await self._swap_client.get_quote(
            input_mint=intent.input_token,
            output_mint=intent.output_token,
            amount=amount,
            slippage_bps=self._slippage_bps,
        )
        logger.info(
            f"Quote {intent.pair}: in={quote.in_amount} out={quote.out_amount} "
            f"grid={intent.grid_id} level={intent.level}"
        )

        swap = await self._swap_client.build_swap(quote, self._signer.public_key)
        signed = self._signer.sign(swap.transaction)

        signature = await self._rpc_client.send_raw_transaction(signed.raw)
        await self._rpc_client.confirm_transaction(signature, swap.last_valid_block_height)

        output_amount = quote.out_amount / 10 ** intent.output_decimals
        logger.info(
            f"Swapped {intent.input_amount:.9f} {intent.input_symbol} for "
            f"{output_amount:.9f} {intent.output_symbol}: {transaction_url(signature)}"
        )
        return SwapResult(
            success=True,
            executed_output_amount=output_amount,
            transaction_ref=signature,
        )
