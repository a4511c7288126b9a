"""
Level-table recomputation after a range or level-count edit.

The new table and the reprojected current level are produced together so the
caller can swap them in one step. Inventory is not rebalanced.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from swapcore.config import GridConfig
from swapcore.errors import ConfigError
from swapcore.levels import MIN_LEVEL_COUNT, build_levels, locate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recomputation:
    """Result of a level-table recomputation."""
    config: GridConfig
    current_level: Optional[int]

    @property
    def levels(self) -> tuple[float, ...]:
        return self.config.levels


def recompute(
    old_config: GridConfig,
    new_upper_limit: float,
    new_lower_limit: float,
    new_level_count: Optional[int] = None,
    last_price: Optional[float] = None,
) -> Recomputation:
    """
    Recompute a grid's level table over a new range.

    Args:
        old_config: Current grid configuration
        new_upper_limit: New upper limit
        new_lower_limit: New lower limit
        new_level_count: New level count, or None to keep the current one
        last_price: Last observed price, used to reproject the current level

    Returns:
        Recomputation with the new config and the reprojected current level
        (None if no price was ever observed)

    Raises:
        ConfigError: If the new range or level count is invalid; nothing is changed
    """
    level_count = old_config.level_count if new_level_count is None else new_level_count

    if new_upper_limit <= new_lower_limit:
        raise ConfigError(
            f"Grid {old_config.grid_id}: upper limit must be greater than lower limit, "
            f"got lower={new_lower_limit} upper={new_upper_limit}"
        )
    if level_count < MIN_LEVEL_COUNT:
        raise ConfigError(
            f"Grid {old_config.grid_id}: level count must be at least {MIN_LEVEL_COUNT}, got {level_count}"
        )

    levels = build_levels(new_lower_limit, new_upper_limit, level_count)
    new_config = dataclasses.replace(
        old_config,
        lower_limit=new_lower_limit,
        upper_limit=new_upper_limit,
        level_count=level_count,
        levels=levels,
        levels_version=old_config.levels_version + 1,
    )

    current_level = locate(levels, last_price) if last_price is not None else None

    if level_count != old_config.level_count:
        logger.warning(
            'Grid %s: level count changed from %d to %d, inventory is not rebalanced',
            old_config.grid_id, old_config.level_count, level_count,
        )

    logger.info(
        'Grid %s: recomputed levels over %s - %s (%d levels), current level %s',
        old_config.grid_id, new_lower_limit, new_upper_limit, level_count, current_level,
    )
    return Recomputation(config=new_config, current_level=current_level)
