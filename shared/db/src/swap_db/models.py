"""SQLAlchemy ORM models for the grid swap bot database.

Two tables:
- grids: grid configuration, level table and the bot's checkpoint mirror
- trades: append-only history of executed swaps
"""

from datetime import datetime, UTC
from typing import Optional, List
from uuid import uuid4

from sqlalchemy import (
    String,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from swap_db.enums import GridStatus


def generate_uuid() -> str:
    """Generate UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Grid(Base):
    """Grid configuration and persisted checkpoint.

    The checkpoint columns (current_price, current_level, source_amount,
    target_amount, counters, profit) mirror the bot's in-memory state for
    crash recovery. Only the bot writes them.

    ``levels`` stores the level table keyed by stringified level index.
    """

    __tablename__ = "grids"

    grid_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    source_token_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    source_token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_token_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    target_token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    target_decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=6)

    lower_limit: Mapped[float] = mapped_column(Float, nullable=False)
    upper_limit: Mapped[float] = mapped_column(Float, nullable=False)
    level_count: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_invested: Mapped[float] = mapped_column(Float, nullable=False)
    levels: Mapped[dict[str, float]] = mapped_column(JSON, nullable=False)
    # Bumped on every level-table edit; checkpoints written against an older table are rejected
    levels_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=GridStatus.ACTIVE.value)

    # Checkpoint
    current_price: Mapped[Optional[float]] = mapped_column(Float)
    current_level: Mapped[Optional[int]] = mapped_column(Integer)
    source_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    target_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_buys: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sells: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    profit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    trades: Mapped[List["Trade"]] = relationship(
        back_populates="grid", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_grids_status", "status"),
    )


class Trade(Base):
    """One executed swap for one grid crossing.

    Rows are never updated. ``(grid_id, intent_id, transaction_ref)`` is
    unique so that re-appending the same executed swap is a no-op.
    """

    __tablename__ = "trades"

    trade_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    grid_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("grids.grid_id", ondelete="CASCADE"), nullable=False
    )
    intent_id: Mapped[str] = mapped_column(String(32), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)  # BUY / SELL
    grid_level: Mapped[int] = mapped_column(Integer, nullable=False)
    input_token: Mapped[str] = mapped_column(String(20), nullable=False)
    output_token: Mapped[str] = mapped_column(String(20), nullable=False)
    input_token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    output_token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    input_amount: Mapped[float] = mapped_column(Float, nullable=False)
    output_amount: Mapped[float] = mapped_column(Float, nullable=False)
    level_price: Mapped[float] = mapped_column(Float, nullable=False)
    profit: Mapped[Optional[float]] = mapped_column(Float)  # SELL only
    transaction_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    grid: Mapped["Grid"] = relationship(back_populates="trades")

    __table_args__ = (
        UniqueConstraint("grid_id", "intent_id", "transaction_ref", name="uq_trade_intent_tx"),
        Index("ix_trades_grid_executed", "grid_id", "executed_at"),
        Index("ix_trades_executed_at", "executed_at"),
    )
