from enum import StrEnum


class TradeSide(StrEnum):
    """Side of an executed grid trade."""
    BUY = "BUY"
    SELL = "SELL"


class GridStatus(StrEnum):
    """Whether the bot trades a grid."""
    ACTIVE = "active"
    PAUSED = "paused"
