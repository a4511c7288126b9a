"""Startup reconciliation between the stored checkpoint and in-memory state.

Before the first tick each grid's GridState is seeded from its last
checkpoint, so a restart never re-fires historical crossings:
- no checkpoint level and no price: fresh state, the first tick only records a level
- stored level inside the level table: restored as-is, including inventory and
  counters; crossings missed while the bot was down replay on the next tick
- stored level outside the table (edited offline): reprojected from the
  stored price, or cleared when no price was ever stored
"""

import logging
from dataclasses import dataclass
from typing import Optional

from swapcore.config import GridConfig
from swapcore.levels import locate
from swapcore.state import GridState

from swapbot.store import GridStore


logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Result of reconciling one grid."""

    grid_id: str
    restored_level: Optional[int] = None
    restored_price: Optional[float] = None
    from_checkpoint: bool = False
    reprojected: bool = False
    errors: list[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []


class Reconciler:
    """Seeds GridState from the persisted checkpoint.

    Example:
        reconciler = Reconciler(store)
        state, result = reconciler.reconcile_startup(config)
        if result.reprojected:
            logger.warning(f"Grid {config.grid_id} level was reprojected")
    """

    def __init__(self, store: GridStore):
        self._store = store

    def reconcile_startup(self, config: GridConfig) -> tuple[GridState, ReconciliationResult]:
        """Build the starting state of one grid.

        Raises:
            PersistenceFailure: If the checkpoint could not be read. The grid
                must not be traded then, since a fresh state would overwrite
                the stored inventory on the next checkpoint.
        """
        result = ReconciliationResult(grid_id=config.grid_id)
        stored = self._store.load_state(config.grid_id)

        if stored is None:
            result.errors.append("grid row missing, starting fresh")
            logger.warning(f"Grid {config.grid_id}: no stored row, starting uninitialized")
            return GridState(grid_id=config.grid_id), result

        result.from_checkpoint = True
        level = stored.current_level
        price = stored.last_observed_price

        if level is not None and not 0 <= level <= config.level_count:
            reprojected = locate(config.levels, price) if price is not None else None
            result.errors.append(f"stored level {level} outside 0..{config.level_count}")
            logger.warning(
                f"Grid {config.grid_id}: stored level {level} outside 0..{config.level_count}, "
                f"reprojected to {reprojected} from price {price}"
            )
            stored.reproject(reprojected)
            result.reprojected = True
        elif level is None and price is not None:
            # Price stored without a level: never trade from it, only track
            stored.reproject(locate(config.levels, price))
            result.reprojected = True
            logger.info(f"Grid {config.grid_id}: level derived from stored price {price}")

        result.restored_level = stored.current_level
        result.restored_price = price

        logger.info(
            f"Grid {config.grid_id} ({config.pair}): restored level={stored.current_level} "
            f"price={price} source={stored.source_inventory:.9f} target={stored.target_inventory:.9f} "
            f"buys={stored.total_buys} sells={stored.total_sells}"
        )
        return stored, result
