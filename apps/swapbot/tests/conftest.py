"""Test fixtures for swapbot tests."""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest

from swap_db import DatabaseFactory, DatabaseSettings
from swapcore.config import GridConfig

from swapbot.config import JupiterConfig, SwapbotConfig
from swapbot.executor import SwapExecutor, SwapResult
from swapbot.notifier import Notifier
from swapbot.store import GridStore

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def sample_swapbot_config():
    """Sample swapbot configuration."""
    return SwapbotConfig(
        database_url="sqlite+pysqlite:///:memory:",
        poll_interval=5.0,
        shadow_mode=True,
        jupiter=JupiterConfig(slippage_bps=50),
    )


@pytest.fixture
def db():
    """Fresh in-memory database for each test."""
    database = DatabaseFactory(DatabaseSettings(db_type="sqlite", db_name=":memory:"))
    database.create_tables()
    yield database
    database.drop_tables()
    database.dispose()


@pytest.fixture
def store(db):
    return GridStore(db)


@pytest.fixture
def stored_grid(store):
    """SOL/USDC grid over 100-120 with 4 levels: 100, 105, 110, 115, 120."""
    return store.create_grid("SOL", SOL, "USDC", USDC, 100.0, 120.0, 4, 100.0, source_decimals=9)


@pytest.fixture
def make_config():
    """Factory for unsaved grid configs over SOL/USDC."""
    def _make(**overrides):
        params = dict(
            grid_id="g1",
            source_token_id=SOL,
            source_token_symbol="SOL",
            target_token_id=USDC,
            target_token_symbol="USDC",
            lower_limit=100.0,
            upper_limit=120.0,
            level_count=4,
            quantity_invested=100.0,
            source_decimals=9,
        )
        params.update(overrides)
        return GridConfig(**params)
    return _make


@pytest.fixture
def notifier():
    return MagicMock(spec=Notifier)


@pytest.fixture
def price_source():
    """Price source quoting SOL at 106 USD and USDC at 1 USD."""
    source = MagicMock()
    source.get_prices = AsyncMock(return_value={SOL: 106.0, USDC: 1.0})
    return source


@pytest.fixture
def executor():
    """Executor that fills every intent at its expected output."""
    mock = MagicMock(spec=SwapExecutor)
    refs = itertools.count(1)

    async def fill(intent):
        return SwapResult(
            success=True,
            executed_output_amount=intent.expected_output_amount,
            transaction_ref=f"sig-{next(refs)}",
        )

    mock.execute = AsyncMock(side_effect=fill)
    return mock
