"""
Trade record model.

One record per executed intent, appended to the trade history. Records are
never updated after creation.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional

from swapcore.events import Direction
from swapcore.intents import TradeIntent


@dataclass(frozen=True)
class TradeRecord:
    """Executed swap for one crossing. ``profit`` is None for BUY records."""
    grid_id: str
    intent_id: str
    side: Direction
    grid_level: int
    input_token: str
    output_token: str
    input_token_id: str
    output_token_id: str
    input_amount: float
    output_amount: float
    level_price: float
    transaction_ref: Optional[str] = None
    profit: Optional[float] = None
    executed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_intent(
        cls,
        intent: TradeIntent,
        output_amount: Optional[float],
        transaction_ref: Optional[str],
    ) -> "TradeRecord":
        """Build the record for an executed intent."""
        return cls(
            grid_id=intent.grid_id,
            intent_id=intent.intent_id,
            side=intent.direction,
            grid_level=intent.level,
            input_token=intent.input_symbol,
            output_token=intent.output_symbol,
            input_token_id=intent.input_token,
            output_token_id=intent.output_token,
            input_amount=intent.input_amount,
            output_amount=intent.expected_output_amount if output_amount is None else output_amount,
            level_price=intent.level_price,
            transaction_ref=transaction_ref,
            profit=intent.expected_profit if intent.direction == Direction.SELL else None,
        )
