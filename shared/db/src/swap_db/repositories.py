"""Repository pattern for grid and trade persistence."""

from typing import Generic, TypeVar, Optional, List

from sqlalchemy import case, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from swap_db.enums import GridStatus, TradeSide
from swap_db.models import Base, Grid, Trade, generate_uuid


T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations.

    Usage:
        repo = GridRepository(session)
        grid = repo.get_by_id("uuid-here")
        grids = repo.get_all(limit=10)
    """

    def __init__(self, session: Session, model_class: type[T]):
        """Initialize repository with session and model class.

        Args:
            session: SQLAlchemy session instance.
            model_class: The ORM model class to operate on.
        """
        self.session = session
        self.model_class = model_class

    def get_by_id(self, id: str) -> Optional[T]:
        """Get entity by primary key, or None."""
        return self.session.get(self.model_class, id)

    def create(self, entity: T) -> T:
        """Insert a new entity and flush generated fields."""
        self.session.add(entity)
        self.session.flush()
        return entity

    def update(self, entity: T) -> T:
        """Merge an existing entity."""
        merged = self.session.merge(entity)
        self.session.flush()
        return merged

    def delete(self, entity: T) -> None:
        """Delete an entity."""
        self.session.delete(entity)
        self.session.flush()


class GridRepository(BaseRepository[Grid]):
    """Repository for Grid configuration and checkpoint rows."""

    def __init__(self, session: Session):
        super().__init__(session, Grid)

    def get_all(self, limit: int = 100, offset: int = 0) -> List[Grid]:
        """Get grids, newest first.

        Args:
            limit: Max grids.
            offset: Offset.
        """
        stmt = (
            select(Grid)
            .order_by(Grid.created_at.desc(), Grid.grid_id)
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt))

    def get_active(self) -> List[Grid]:
        """Get every grid the bot should trade, oldest first."""
        stmt = (
            select(Grid)
            .where(Grid.status == GridStatus.ACTIVE.value)
            .order_by(Grid.created_at, Grid.grid_id)
        )
        return list(self.session.scalars(stmt))

    def count_active(self) -> int:
        """Number of active grids."""
        stmt = select(func.count()).select_from(Grid).where(Grid.status == GridStatus.ACTIVE.value)
        return self.session.scalar(stmt) or 0

    def total_current_value(self) -> float:
        """Sum of ``current_value`` across all grids."""
        return float(self.session.scalar(select(func.coalesce(func.sum(Grid.current_value), 0.0))))

    def save_checkpoint(
        self,
        grid_id: str,
        current_level: Optional[int],
        current_price: Optional[float],
        source_amount: float,
        target_amount: float,
        levels_version: Optional[int] = None,
    ) -> bool:
        """Overwrite a grid's checkpoint columns.

        Writing the same checkpoint twice leaves the row unchanged.
        ``current_value`` is recomputed as ``source * price + target`` when
        a price is known.

        Args:
            levels_version: Level-table version the level was located in.
                When given, the row is only written if it still has that
                version. None writes unconditionally.

        Returns:
            True if a row was written.
        """
        values = {
            "current_level": current_level,
            "current_price": current_price,
            "source_amount": source_amount,
            "target_amount": target_amount,
        }
        if current_price is not None:
            values["current_value"] = source_amount * current_price + target_amount

        stmt = update(Grid).where(Grid.grid_id == grid_id)
        if levels_version is not None:
            stmt = stmt.where(Grid.levels_version == levels_version)
        result = self.session.execute(stmt.values(**values))
        self.session.flush()
        return result.rowcount > 0

    def increment_counters(self, grid_id: str, buys: int = 0, sells: int = 0, profit: float = 0.0) -> bool:
        """Atomically add to a grid's trade counters and realized profit.

        Returns:
            True if the grid exists.
        """
        result = self.session.execute(
            update(Grid)
            .where(Grid.grid_id == grid_id)
            .values(
                total_buys=Grid.total_buys + buys,
                total_sells=Grid.total_sells + sells,
                profit=Grid.profit + profit,
            )
        )
        self.session.flush()
        return result.rowcount > 0

    def update_price_limits(
        self,
        grid: Grid,
        lower_limit: float,
        upper_limit: float,
        level_count: int,
        levels: dict[str, float],
        current_level: Optional[int],
        levels_version: int,
    ) -> Grid:
        """Swap a grid's range, level table and reprojected level together.

        The caller computes the new table, level and version; they are
        written in one flush so no reader sees one without the other.
        """
        grid.lower_limit = lower_limit
        grid.upper_limit = upper_limit
        grid.level_count = level_count
        grid.levels = levels
        grid.current_level = current_level
        grid.levels_version = levels_version
        self.session.flush()
        return grid

    def set_status(self, grid_id: str, status: GridStatus) -> bool:
        """Activate or pause a grid."""
        result = self.session.execute(
            update(Grid).where(Grid.grid_id == grid_id).values(status=status.value)
        )
        self.session.flush()
        return result.rowcount > 0


class TradeRepository(BaseRepository[Trade]):
    """Repository for the append-only trade history."""

    def __init__(self, session: Session):
        super().__init__(session, Trade)

    def append(self, trade: Trade) -> bool:
        """Insert a trade unless the same executed swap is already recorded.

        Uses ON CONFLICT DO NOTHING on ``(grid_id, intent_id, transaction_ref)``.

        Returns:
            True if a row was inserted, False for a duplicate.
        """
        data = {
            "trade_id": trade.trade_id or generate_uuid(),
            "grid_id": trade.grid_id,
            "intent_id": trade.intent_id,
            "side": str(trade.side),
            "grid_level": trade.grid_level,
            "input_token": trade.input_token,
            "output_token": trade.output_token,
            "input_token_id": trade.input_token_id,
            "output_token_id": trade.output_token_id,
            "input_amount": trade.input_amount,
            "output_amount": trade.output_amount,
            "level_price": trade.level_price,
            "profit": trade.profit,
            "transaction_ref": trade.transaction_ref,
        }
        if trade.executed_at is not None:
            data["executed_at"] = trade.executed_at

        conflict_columns = ["grid_id", "intent_id", "transaction_ref"]
        db_dialect = self.session.get_bind().dialect.name
        if db_dialect == "postgresql":
            stmt = postgresql_insert(Trade).values(data).on_conflict_do_nothing(index_elements=conflict_columns)
        elif db_dialect == "sqlite":
            stmt = sqlite_insert(Trade).values(data).on_conflict_do_nothing(index_elements=conflict_columns)
        else:
            stmt = insert(Trade).values(data)

        result = self.session.execute(stmt)
        self.session.flush()
        return bool(result.rowcount)

    def get_by_grid_id(self, grid_id: str, limit: int = 100, offset: int = 0) -> List[Trade]:
        """Trades of one grid, newest first."""
        stmt = (
            select(Trade)
            .where(Trade.grid_id == grid_id)
            .order_by(Trade.executed_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt))

    def get_recent(self, limit: int = 10) -> List[Trade]:
        """Most recent trades across all grids."""
        stmt = select(Trade).order_by(Trade.executed_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    def get_summary_by_grid_id(self, grid_id: str) -> dict:
        """Trade counts and realized profit for one grid.

        Returns:
            Dict with total_trades, buys, sells, total_profit.
        """
        stmt = select(
            func.count(Trade.trade_id),
            func.coalesce(func.sum(case((Trade.side == TradeSide.BUY.value, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Trade.side == TradeSide.SELL.value, 1), else_=0)), 0),
            func.coalesce(func.sum(Trade.profit), 0.0),
        ).where(Trade.grid_id == grid_id)
        total, buys, sells, profit = self.session.execute(stmt).one()
        return {
            "total_trades": int(total),
            "buys": int(buys),
            "sells": int(sells),
            "total_profit": float(profit),
        }
