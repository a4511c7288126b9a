"""
Configuration model for a single grid.

A GridConfig is immutable once created. Range or level-count edits produce a
new GridConfig through swapcore.recompute, never an in-place update.
"""

from dataclasses import dataclass, field
from typing import Optional

from swapcore.errors import ConfigError
from swapcore.levels import MIN_LEVEL_COUNT, build_levels, validate_levels

DEFAULT_TOKEN_DECIMALS = 6


@dataclass(frozen=True)
class GridConfig:
    """
    Configuration for one grid over one token pair.

    Prices are quoted as target-side units per source-side unit.

    Attributes:
        grid_id: Unique grid identifier
        source_token_id: Mint address of the source-side asset
        source_token_symbol: Display symbol of the source-side asset
        target_token_id: Mint address of the target-side asset
        target_token_symbol: Display symbol of the target-side asset
        lower_limit: Price of level 0
        upper_limit: Price of the top level
        level_count: Number of intervals between lower and upper limit
        quantity_invested: Total notional allocated to the grid (target-side units)
        levels: Boundary prices ``levels[0..level_count]``; computed evenly if omitted
        source_decimals: On-chain decimals of the source token
        target_decimals: On-chain decimals of the target token
        levels_version: Edit counter of the level table, bumped by each recomputation
    """
    grid_id: str
    source_token_id: str
    source_token_symbol: str
    target_token_id: str
    target_token_symbol: str
    lower_limit: float
    upper_limit: float
    level_count: int
    quantity_invested: float
    levels: tuple[float, ...] = field(default=())
    source_decimals: int = DEFAULT_TOKEN_DECIMALS
    target_decimals: int = DEFAULT_TOKEN_DECIMALS
    levels_version: int = 0

    def __post_init__(self):
        """Validate parameters and compute the level table when not given."""
        if self.lower_limit <= 0:
            raise ConfigError(f"Grid {self.grid_id}: lower_limit must be positive, got {self.lower_limit}")
        if self.upper_limit <= self.lower_limit:
            raise ConfigError(
                f"Grid {self.grid_id}: upper_limit must be greater than lower_limit, "
                f"got lower={self.lower_limit} upper={self.upper_limit}"
            )
        if self.level_count < MIN_LEVEL_COUNT:
            raise ConfigError(
                f"Grid {self.grid_id}: level_count must be at least {MIN_LEVEL_COUNT}, got {self.level_count}"
            )
        if self.quantity_invested <= 0:
            raise ConfigError(
                f"Grid {self.grid_id}: quantity_invested must be positive, got {self.quantity_invested}"
            )
        if self.source_decimals < 0 or self.target_decimals < 0:
            raise ConfigError(f"Grid {self.grid_id}: token decimals must not be negative")

        if not self.levels:
            object.__setattr__(
                self, 'levels', build_levels(self.lower_limit, self.upper_limit, self.level_count)
            )
            return

        levels = tuple(float(price) for price in self.levels)
        if len(levels) != self.level_count + 1:
            raise ConfigError(
                f"Grid {self.grid_id}: level table has {len(levels)} prices, "
                f"expected {self.level_count + 1}"
            )
        validate_levels(levels)
        if levels[0] != self.lower_limit or levels[-1] != self.upper_limit:
            raise ConfigError(
                f"Grid {self.grid_id}: level table must start at lower_limit and end at upper_limit"
            )
        object.__setattr__(self, 'levels', levels)

    @property
    def quantity_per_level(self) -> float:
        """Notional allocated to each level (target-side units)."""
        return self.quantity_invested / self.level_count

    @property
    def pair(self) -> str:
        """Human-readable pair label, e.g. 'SOL/USDC'."""
        return f"{self.source_token_symbol}/{self.target_token_symbol}"

    def level_price(self, level: int) -> float:
        """
        Get the boundary price of a level.

        Raises:
            ConfigError: If the level is outside ``0..level_count``
        """
        if not 0 <= level <= self.level_count:
            raise ConfigError(f"Grid {self.grid_id}: level {level} outside 0..{self.level_count}")
        return self.levels[level]

    def reference_buy_price(self, level: int) -> float:
        """Price one level below ``level``, or the lower limit at level 0."""
        if level > 0:
            return self.level_price(level - 1)
        return self.lower_limit

    def levels_dict(self) -> dict[str, float]:
        """Level table keyed by stringified index (storage format)."""
        return {str(index): price for index, price in enumerate(self.levels)}

    @staticmethod
    def levels_from_dict(levels: Optional[dict]) -> tuple[float, ...]:
        """Rebuild a level tuple from its storage format."""
        if not levels:
            return ()
        return tuple(float(price) for _, price in sorted(levels.items(), key=lambda item: int(item[0])))
