"""
Crossing event model.

A CrossingEvent is emitted once per level boundary traversed between two price
observations. Events are ephemeral: they are never persisted on their own and
exist only as the unit of work handed to the intent builder.
"""

from dataclasses import dataclass
from enum import StrEnum


class Direction(StrEnum):
    """Trade direction triggered by a crossing."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class CrossingEvent:
    """One level boundary traversed by the price."""
    grid_id: str
    level: int
    direction: Direction
