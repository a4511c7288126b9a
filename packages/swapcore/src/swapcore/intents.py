"""
Trade intent models for grid trading.

Intents describe the swap a crossing requires without performing it. The
controller hands them to the execution layer (live venue or shadow mode).

Building an intent is deterministic: the same (grid, level, direction) always
yields an identical intent, which is what makes a retry on the next tick safe.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from swapcore.config import GridConfig
from swapcore.events import CrossingEvent, Direction

if TYPE_CHECKING:
    from swapcore.state import GridState


@dataclass(frozen=True)
class TradeIntent:
    """
    Fully specified swap for one crossing.

    Amounts are in token units (not smallest on-chain units). Expected output
    and expected profit are informational: the executed output amount comes
    from the venue's quote.
    """
    grid_id: str
    direction: Direction
    level: int
    level_price: float
    input_token: str
    output_token: str
    input_symbol: str
    output_symbol: str
    input_decimals: int
    output_decimals: int
    input_amount: float
    expected_output_amount: float
    expected_profit: Optional[float]  # SELL only
    intent_id: str

    # Parameters that determine intent identity
    _IDENTITY_PARAMS = ['grid_id', 'level', 'direction']

    @classmethod
    def identity(cls, grid_id: str, level: int, direction: Direction) -> str:
        """
        Deterministic identifier for a (grid, level, direction) crossing.

        Used as the idempotency key of trade records.
        """
        params = {'grid_id': grid_id, 'level': level, 'direction': str(direction)}
        id_string = "_".join(str(params[param]) for param in cls._IDENTITY_PARAMS)
        return hashlib.sha256(id_string.encode()).hexdigest()[:16]

    @property
    def pair(self) -> str:
        return f"{self.input_symbol}->{self.output_symbol}"


def build_intent(config: GridConfig, state: Optional["GridState"], event: CrossingEvent) -> TradeIntent:
    """
    Build the trade intent for a crossing.

    BUY spends ``quantity_per_level`` of the target token for the source token.
    SELL spends ``quantity_per_level / level_price`` of the source token for the
    target token and attributes profit against the price one level below.

    The profit figure is an approximation, not lot-matched accounting: it
    assumes the sold amount was bought exactly one level lower.

    ``state`` is accepted so callers pass the full grid context, but the intent
    never depends on it.

    Args:
        config: Grid configuration
        state: Current grid state (not read)
        event: Crossing to trade

    Returns:
        TradeIntent for the crossing

    Raises:
        ConfigError: If the crossing level is outside the grid
    """
    level_price = config.level_price(event.level)
    quantity = config.quantity_per_level
    intent_id = TradeIntent.identity(config.grid_id, event.level, event.direction)

    if event.direction == Direction.BUY:
        return TradeIntent(
            grid_id=config.grid_id,
            direction=Direction.BUY,
            level=event.level,
            level_price=level_price,
            input_token=config.target_token_id,
            output_token=config.source_token_id,
            input_symbol=config.target_token_symbol,
            output_symbol=config.source_token_symbol,
            input_decimals=config.target_decimals,
            output_decimals=config.source_decimals,
            input_amount=quantity,
            expected_output_amount=quantity / level_price,
            expected_profit=None,
            intent_id=intent_id,
        )

    input_amount = quantity / level_price
    reference_price = config.reference_buy_price(event.level)
    return TradeIntent(
        grid_id=config.grid_id,
        direction=Direction.SELL,
        level=event.level,
        level_price=level_price,
        input_token=config.source_token_id,
        output_token=config.target_token_id,
        input_symbol=config.source_token_symbol,
        output_symbol=config.target_token_symbol,
        input_decimals=config.source_decimals,
        output_decimals=config.target_decimals,
        input_amount=input_amount,
        expected_output_amount=input_amount * level_price,
        expected_profit=(level_price - reference_price) * input_amount,
        intent_id=intent_id,
    )
