"""
Persistence layer for gridswap.

Grid configuration with its checkpoint mirror, and the append-only trade
history. Supports SQLite (development) and PostgreSQL (production).
"""

from swap_db.settings import DatabaseSettings
from swap_db.database import DatabaseFactory
from swap_db.models import Base, Grid, Trade
from swap_db.enums import GridStatus, TradeSide
from swap_db.repositories import BaseRepository, GridRepository, TradeRepository
from swap_db.utils import redact_db_url

__all__ = [
    # Settings
    "DatabaseSettings",
    # Database
    "DatabaseFactory",
    # Models
    "Base",
    "Grid",
    "Trade",
    "GridStatus",
    "TradeSide",
    # Repositories
    "BaseRepository",
    "GridRepository",
    "TradeRepository",
    # Utils
    "redact_db_url",
]
