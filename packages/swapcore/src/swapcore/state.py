"""
Mutable per-grid trading state.

A GridState is owned exclusively by the controller. The persisted checkpoint
is a mirror used for crash recovery, never a second writer. External readers
get a frozen GridSnapshot.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from swapcore.events import Direction
from swapcore.intents import TradeIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Persisted level/price/inventory snapshot of one grid.

    ``levels_version`` names the level table ``current_level`` indexes into;
    None skips the stale-table check on write.
    """
    grid_id: str
    current_level: Optional[int]
    last_observed_price: Optional[float]
    source_inventory: float = 0.0
    target_inventory: float = 0.0
    levels_version: Optional[int] = None


@dataclass(frozen=True)
class GridSnapshot:
    """Read-only copy of a GridState for status and reporting."""
    grid_id: str
    current_level: Optional[int]
    last_observed_price: Optional[float]
    source_inventory: float
    target_inventory: float
    total_buys: int
    total_sells: int
    realized_profit: float

    @property
    def initialized(self) -> bool:
        return self.current_level is not None


@dataclass
class GridState:
    """
    Trading state of one grid.

    ``current_level`` only moves through ``initialize``, ``apply_fill`` (one
    traded crossing at a time) and ``reproject`` (atomic with a level-table
    swap). It is never jumped straight to a newly observed level.
    """
    grid_id: str
    current_level: Optional[int] = None
    last_observed_price: Optional[float] = None
    source_inventory: float = 0.0
    target_inventory: float = 0.0
    total_buys: int = 0
    total_sells: int = 0
    realized_profit: float = 0.0

    @property
    def initialized(self) -> bool:
        """False until the first price observation has recorded a level."""
        return self.current_level is not None

    def initialize(self, level: int, price: float) -> None:
        """Record the first observed level without trading."""
        if self.initialized:
            raise RuntimeError(f"Grid {self.grid_id} already initialized at level {self.current_level}")
        self.current_level = level
        self.last_observed_price = price

    def observe(self, price: float) -> None:
        """Record the latest observed price."""
        self.last_observed_price = price

    def apply_fill(self, intent: TradeIntent, output_amount: Optional[float] = None) -> None:
        """
        Apply one executed crossing.

        Updates inventory and counters and advances ``current_level`` to the
        intent's level.

        Args:
            intent: The executed intent
            output_amount: Executed output in token units; falls back to the
                intent's expected output when the venue did not report one
        """
        if intent.grid_id != self.grid_id:
            raise ValueError(f"Intent for grid {intent.grid_id} applied to grid {self.grid_id}")

        received = intent.expected_output_amount if output_amount is None else output_amount

        if intent.direction == Direction.BUY:
            self.source_inventory += received
            self.target_inventory -= intent.input_amount
            self.total_buys += 1
        else:
            self.source_inventory -= intent.input_amount
            self.target_inventory += received
            self.total_sells += 1
            self.realized_profit += intent.expected_profit or 0.0

        self.current_level = intent.level

        if self.source_inventory < 0 or self.target_inventory < 0:
            logger.warning(
                'Grid %s: negative inventory after %s at level %d (source=%.9f target=%.9f)',
                self.grid_id, intent.direction, intent.level,
                self.source_inventory, self.target_inventory,
            )

    def reproject(self, level: Optional[int]) -> None:
        """Replace the current level after a level-table swap."""
        self.current_level = level

    def checkpoint(self, levels_version: Optional[int] = None) -> Checkpoint:
        """Build the persisted checkpoint for this state."""
        return Checkpoint(
            grid_id=self.grid_id,
            current_level=self.current_level,
            last_observed_price=self.last_observed_price,
            source_inventory=self.source_inventory,
            target_inventory=self.target_inventory,
            levels_version=levels_version,
        )

    def snapshot(self) -> GridSnapshot:
        """Frozen copy for external readers."""
        return GridSnapshot(
            grid_id=self.grid_id,
            current_level=self.current_level,
            last_observed_price=self.last_observed_price,
            source_inventory=self.source_inventory,
            target_inventory=self.target_inventory,
            total_buys=self.total_buys,
            total_sells=self.total_sells,
            realized_profit=self.realized_profit,
        )
