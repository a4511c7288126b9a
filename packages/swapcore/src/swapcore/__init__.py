"""
swapcore - Pure grid trading logic with zero venue dependencies.

This package maps prices to grid levels, resolves level crossings into an
ordered replay, builds deterministic trade intents, and holds per-grid
trading state. It is shared by the live bot and its tests.
"""

from swapcore.errors import (
    GridswapError,
    ConfigError,
    PriceUnavailable,
    ExecutionFailure,
    ExecutionErrorKind,
    PersistenceFailure,
)
from swapcore.levels import build_levels, validate_levels, locate
from swapcore.config import GridConfig
from swapcore.events import CrossingEvent, Direction
from swapcore.crossing import resolve
from swapcore.intents import TradeIntent, build_intent
from swapcore.state import GridState, GridSnapshot, Checkpoint
from swapcore.records import TradeRecord
from swapcore.recompute import Recomputation, recompute

__version__ = "0.1.0"

__all__ = [
    "GridswapError",
    "ConfigError",
    "PriceUnavailable",
    "ExecutionFailure",
    "ExecutionErrorKind",
    "PersistenceFailure",
    "build_levels",
    "validate_levels",
    "locate",
    "GridConfig",
    "CrossingEvent",
    "Direction",
    "resolve",
    "TradeIntent",
    "build_intent",
    "GridState",
    "GridSnapshot",
    "Checkpoint",
    "TradeRecord",
    "Recomputation",
    "recompute",
]
