"""Grid store: persistence collaborator of the controller.

Wraps the swap_db repositories behind the operations the bot and the admin
CLI need, converts rows to swapcore types, and turns database errors into
PersistenceFailure.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swap_db import DatabaseFactory, Grid, GridStatus, Trade
from swap_db.models import generate_uuid
from swap_db.repositories import GridRepository, TradeRepository
from swapcore.config import DEFAULT_TOKEN_DECIMALS, GridConfig
from swapcore.errors import ConfigError, GridswapError, PersistenceFailure
from swapcore.events import Direction
from swapcore.records import TradeRecord
from swapcore.recompute import Recomputation, recompute
from swapcore.state import Checkpoint, GridState

logger = logging.getLogger(__name__)


class GridNotFound(GridswapError, LookupError):
    """No grid with the requested id."""


class LevelTableChanged(GridswapError):
    """A checkpoint was built against a level table that has since been edited."""

    def __init__(self, grid_id: str, levels_version: int):
        super().__init__(f"Grid {grid_id}: level table changed since version {levels_version}")
        self.grid_id = grid_id
        self.levels_version = levels_version


@dataclass(frozen=True)
class GridOverview:
    """One grid row as shown in reports."""
    grid_id: str
    pair: str
    status: str
    lower_limit: float
    upper_limit: float
    level_count: int
    quantity_invested: float
    current_price: Optional[float]
    current_level: Optional[int]
    source_amount: float
    target_amount: float
    total_buys: int
    total_sells: int
    profit: float
    current_value: float


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across every grid."""
    grids: tuple[GridOverview, ...]
    total_invested: float
    total_profit: float
    total_buys: int
    total_sells: int
    total_value: float
    active_grids: int

    @property
    def profit_percentage(self) -> float:
        """Realized profit as a percentage of the invested amount."""
        if self.total_invested <= 0:
            return 0.0
        return self.total_profit / self.total_invested * 100


def grid_to_config(grid: Grid) -> GridConfig:
    """Build a GridConfig from a grid row.

    Raises:
        ConfigError: If the stored parameters or level table are invalid
    """
    return GridConfig(
        grid_id=grid.grid_id,
        source_token_id=grid.source_token_id,
        source_token_symbol=grid.source_token_symbol,
        target_token_id=grid.target_token_id,
        target_token_symbol=grid.target_token_symbol,
        lower_limit=grid.lower_limit,
        upper_limit=grid.upper_limit,
        level_count=grid.level_count,
        quantity_invested=grid.quantity_invested,
        levels=GridConfig.levels_from_dict(grid.levels),
        source_decimals=grid.source_decimals,
        target_decimals=grid.target_decimals,
        levels_version=grid.levels_version,
    )


def trade_to_record(trade: Trade) -> TradeRecord:
    """Build a TradeRecord from a trade row."""
    return TradeRecord(
        grid_id=trade.grid_id,
        intent_id=trade.intent_id,
        side=Direction(trade.side),
        grid_level=trade.grid_level,
        input_token=trade.input_token,
        output_token=trade.output_token,
        input_token_id=trade.input_token_id,
        output_token_id=trade.output_token_id,
        input_amount=trade.input_amount,
        output_amount=trade.output_amount,
        level_price=trade.level_price,
        transaction_ref=trade.transaction_ref,
        profit=trade.profit,
        executed_at=trade.executed_at,
    )


def record_to_trade(record: TradeRecord) -> Trade:
    """Build a trade row from a TradeRecord."""
    if not record.transaction_ref:
        raise ValueError(f"Trade record for grid {record.grid_id} has no transaction reference")
    return Trade(
        grid_id=record.grid_id,
        intent_id=record.intent_id,
        side=str(record.side),
        grid_level=record.grid_level,
        input_token=record.input_token,
        output_token=record.output_token,
        input_token_id=record.input_token_id,
        output_token_id=record.output_token_id,
        input_amount=record.input_amount,
        output_amount=record.output_amount,
        level_price=record.level_price,
        profit=record.profit,
        transaction_ref=record.transaction_ref,
        executed_at=record.executed_at,
    )


class GridStore:
    """Grid configuration, checkpoints and trade history.

    Every write runs in its own transaction. Checkpoint writes overwrite the
    row, so writing the same checkpoint twice is harmless.

    Example:
        store = GridStore(DatabaseFactory(settings))
        config = store.create_grid("SOL", SOL_MINT, "USDC", USDC_MINT, 100.0, 120.0, 4, 100.0)
        store.save_checkpoint(Checkpoint(config.grid_id, 1, 106.0))
    """

    def __init__(self, db: DatabaseFactory):
        self._db = db

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._db.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to {action}: {e}") from e

    # Grid configuration

    def create_grid(
        self,
        source_token_symbol: str,
        source_token_id: str,
        target_token_symbol: str,
        target_token_id: str,
        lower_limit: float,
        upper_limit: float,
        level_count: int,
        quantity_invested: float,
        source_decimals: int = DEFAULT_TOKEN_DECIMALS,
        target_decimals: int = DEFAULT_TOKEN_DECIMALS,
    ) -> GridConfig:
        """Validate and store a new grid.

        Raises:
            ConfigError: If the parameters are invalid; nothing is written
            PersistenceFailure: If the row could not be written
        """
        config = GridConfig(
            grid_id=generate_uuid(),
            source_token_id=source_token_id,
            source_token_symbol=source_token_symbol,
            target_token_id=target_token_id,
            target_token_symbol=target_token_symbol,
            lower_limit=lower_limit,
            upper_limit=upper_limit,
            level_count=level_count,
            quantity_invested=quantity_invested,
            source_decimals=source_decimals,
            target_decimals=target_decimals,
        )
        with self._session("create grid") as session:
            GridRepository(session).create(Grid(
                grid_id=config.grid_id,
                source_token_symbol=config.source_token_symbol,
                source_token_id=config.source_token_id,
                target_token_symbol=config.target_token_symbol,
                target_token_id=config.target_token_id,
                source_decimals=config.source_decimals,
                target_decimals=config.target_decimals,
                lower_limit=config.lower_limit,
                upper_limit=config.upper_limit,
                level_count=config.level_count,
                quantity_invested=config.quantity_invested,
                levels=config.levels_dict(),
            ))
        logger.info(
            f"Created grid {config.grid_id} {config.pair} "
            f"{config.lower_limit}-{config.upper_limit} ({config.level_count} levels)"
        )
        return config

    def load_grid_config(self, grid_id: str) -> Optional[GridConfig]:
        """Load one grid's configuration, or None if it does not exist."""
        with self._session(f"load grid {grid_id}") as session:
            grid = GridRepository(session).get_by_id(grid_id)
            return grid_to_config(grid) if grid else None

    def load_grid_configs(self, grid_ids: Optional[list[str]] = None) -> list[GridConfig]:
        """Load every active grid, optionally restricted to ``grid_ids``.

        Grids with an invalid stored configuration are logged and skipped.
        """
        configs = []
        with self._session("load active grids") as session:
            for grid in GridRepository(session).get_active():
                if grid_ids is not None and grid.grid_id not in grid_ids:
                    continue
                try:
                    configs.append(grid_to_config(grid))
                except ConfigError as e:
                    logger.error(f"Skipping grid {grid.grid_id}: {e}")
        return configs

    def load_state(self, grid_id: str) -> Optional[GridState]:
        """Load the checkpoint mirror of a grid as a GridState."""
        with self._session(f"load checkpoint of grid {grid_id}") as session:
            grid = GridRepository(session).get_by_id(grid_id)
            if grid is None:
                return None
            return GridState(
                grid_id=grid.grid_id,
                current_level=grid.current_level,
                last_observed_price=grid.current_price,
                source_inventory=grid.source_amount,
                target_inventory=grid.target_amount,
                total_buys=grid.total_buys,
                total_sells=grid.total_sells,
                realized_profit=grid.profit,
            )

    def save_checkpoint(self, checkpoint: Checkpoint) -> bool:
        """Overwrite a grid's checkpoint columns.

        Returns:
            False if the grid no longer exists.

        Raises:
            LevelTableChanged: If the checkpoint carries a levels version and
                the stored level table has been edited since
        """
        with self._session(f"save checkpoint of grid {checkpoint.grid_id}") as session:
            repo = GridRepository(session)
            saved = self._write_checkpoint(repo, checkpoint)
            exists = saved or repo.get_by_id(checkpoint.grid_id) is not None
        if not exists:
            logger.warning(f"Checkpoint for unknown grid {checkpoint.grid_id} not saved")
            return False
        if not saved:
            raise LevelTableChanged(checkpoint.grid_id, checkpoint.levels_version)
        return True

    @staticmethod
    def _write_checkpoint(repo: GridRepository, checkpoint: Checkpoint) -> bool:
        return repo.save_checkpoint(
            checkpoint.grid_id,
            checkpoint.current_level,
            checkpoint.last_observed_price,
            checkpoint.source_inventory,
            checkpoint.target_inventory,
            levels_version=checkpoint.levels_version,
        )

    def append_trade_record(self, record: TradeRecord) -> bool:
        """Append a trade record. Returns False if it was already recorded."""
        with self._session(f"append trade for grid {record.grid_id}") as session:
            return TradeRepository(session).append(record_to_trade(record))

    def increment_counters(self, grid_id: str, buys: int = 0, sells: int = 0, profit: float = 0.0) -> bool:
        """Add to a grid's trade counters and realized profit."""
        with self._session(f"update counters of grid {grid_id}") as session:
            return GridRepository(session).increment_counters(grid_id, buys=buys, sells=sells, profit=profit)

    def record_fill(self, record: TradeRecord, checkpoint: Optional[Checkpoint] = None) -> bool:
        """Append a trade record, bump the counters and checkpoint in one transaction.

        Counters only move when the record was not already stored. The
        checkpoint (level and inventory after the fill) is committed with the
        trade so a crash never leaves a recorded trade behind an older level.
        A checkpoint against an edited level table is skipped; the trade is
        still recorded.

        Returns:
            True if the record was new.
        """
        with self._session(f"record fill for grid {record.grid_id}") as session:
            inserted = TradeRepository(session).append(record_to_trade(record))
            repo = GridRepository(session)
            if inserted:
                is_buy = record.side == Direction.BUY
                repo.increment_counters(
                    record.grid_id,
                    buys=1 if is_buy else 0,
                    sells=0 if is_buy else 1,
                    profit=record.profit or 0.0,
                )
            checkpointed = checkpoint is None or self._write_checkpoint(repo, checkpoint)
        if not inserted:
            logger.info(f"Trade {record.intent_id}/{record.transaction_ref} already recorded")
        if not checkpointed:
            logger.warning(
                f"Grid {record.grid_id}: level table edited, checkpoint with trade {record.intent_id} skipped"
            )
        return inserted

    def apply_recomputation(self, grid_id: str, recomputation: Recomputation) -> None:
        """Write a recomputed level table and reprojected level together."""
        config = recomputation.config
        with self._session(f"update levels of grid {grid_id}") as session:
            repo = GridRepository(session)
            grid = repo.get_by_id(grid_id)
            if grid is None:
                raise GridNotFound(f"Grid {grid_id} not found")
            repo.update_price_limits(
                grid,
                config.lower_limit,
                config.upper_limit,
                config.level_count,
                config.levels_dict(),
                recomputation.current_level,
                config.levels_version,
            )

    def edit_grid(
        self,
        grid_id: str,
        upper_limit: float,
        lower_limit: float,
        level_count: Optional[int] = None,
    ) -> Recomputation:
        """Change a stored grid's range and/or level count.

        The current level is reprojected from the stored last price.

        Raises:
            GridNotFound: If the grid does not exist
            ConfigError: If the new range or level count is invalid; nothing is written
        """
        with self._session(f"edit grid {grid_id}") as session:
            repo = GridRepository(session)
            grid = repo.get_by_id(grid_id)
            if grid is None:
                raise GridNotFound(f"Grid {grid_id} not found")
            result = recompute(
                grid_to_config(grid), upper_limit, lower_limit, level_count, last_price=grid.current_price,
            )
            config = result.config
            repo.update_price_limits(
                grid,
                config.lower_limit,
                config.upper_limit,
                config.level_count,
                config.levels_dict(),
                result.current_level,
                config.levels_version,
            )
        return result

    def delete_grid(self, grid_id: str) -> bool:
        """Delete a grid and its trade history."""
        with self._session(f"delete grid {grid_id}") as session:
            repo = GridRepository(session)
            grid = repo.get_by_id(grid_id)
            if grid is None:
                return False
            repo.delete(grid)
        logger.info(f"Deleted grid {grid_id}")
        return True

    def set_status(self, grid_id: str, status: GridStatus) -> bool:
        """Activate or pause a grid."""
        with self._session(f"set status of grid {grid_id}") as session:
            return GridRepository(session).set_status(grid_id, status)

    # Reporting

    def summary(self) -> PortfolioSummary:
        """Totals across all grids, newest grid first."""
        with self._session("load summary") as session:
            repo = GridRepository(session)
            grids = tuple(
                GridOverview(
                    grid_id=g.grid_id,
                    pair=f"{g.source_token_symbol}/{g.target_token_symbol}",
                    status=g.status,
                    lower_limit=g.lower_limit,
                    upper_limit=g.upper_limit,
                    level_count=g.level_count,
                    quantity_invested=g.quantity_invested,
                    current_price=g.current_price,
                    current_level=g.current_level,
                    source_amount=g.source_amount,
                    target_amount=g.target_amount,
                    total_buys=g.total_buys,
                    total_sells=g.total_sells,
                    profit=g.profit,
                    current_value=g.current_value,
                )
                for g in repo.get_all(limit=1000)
            )
            active = repo.count_active()
            total_value = repo.total_current_value()

        return PortfolioSummary(
            grids=grids,
            total_invested=sum(g.quantity_invested for g in grids),
            total_profit=sum(g.profit for g in grids),
            total_buys=sum(g.total_buys for g in grids),
            total_sells=sum(g.total_sells for g in grids),
            total_value=total_value,
            active_grids=active,
        )

    def trades(self, grid_id: Optional[str] = None, limit: int = 20) -> list[TradeRecord]:
        """Most recent trades, newest first, for one grid or all grids."""
        with self._session("load trades") as session:
            repo = TradeRepository(session)
            rows = repo.get_by_grid_id(grid_id, limit=limit) if grid_id else repo.get_recent(limit=limit)
            return [trade_to_record(t) for t in rows]

    def trade_summary(self, grid_id: str) -> dict:
        """Trade counts and realized profit for one grid."""
        with self._session(f"summarize trades of grid {grid_id}") as session:
            return TradeRepository(session).get_summary_by_grid_id(grid_id)
